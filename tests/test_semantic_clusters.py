"""
Tests for the semantic cluster classifier.
"""

import pytest

from visa_interview.interview.semantic_clusters import classify, cluster_names


class TestClassify:
    @pytest.mark.parametrize(
        "text, cluster",
        [
            ("Do you plan to return to Nepal after your studies?", "return_intent"),
            ("Who is sponsoring your education?", "finance_sponsor"),
            ("Why did you fail two subjects?", "failure_grades"),
            ("Do you have any relatives in the US?", "us_relatives"),
            ("Why did you choose this university?", "university_choice"),
            ("Have you taken the TOEFL or IELTS?", "test_scores"),
            ("Did an agent help with your application?", "agent_involvement"),
        ],
    )
    def test_known_clusters(self, text, cluster):
        assert classify(text) == cluster

    def test_case_insensitive(self):
        assert classify("WHO WILL SPONSOR YOU?") == "finance_sponsor"

    def test_table_order_breaks_ties(self):
        # Mentions both returning and funding; return_intent comes first
        assert classify("Will you return home once your sponsor stops paying?") == "return_intent"

    def test_unmatched_text(self):
        assert classify("Tell me about yourself.") is None

    def test_degree_is_not_a_test_score(self):
        assert classify("What is your degree?") is None


def test_cluster_names_in_table_order():
    names = cluster_names()

    assert names[0] == "return_intent"
    assert len(names) == len(set(names))
    assert len(names) >= 15
