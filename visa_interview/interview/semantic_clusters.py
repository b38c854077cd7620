"""
Semantic cluster classifier.

Maps question text to a coarse topic label so repetition can be judged by
meaning rather than wording. Classification is case-insensitive substring
membership; clusters are tried in table order and the first match wins.
"""

SEMANTIC_CLUSTERS: dict[str, tuple[str, ...]] = {
    "return_intent": (
        "return", "come back", "go back", "plans after", "after graduation",
        "after studies", "after completing", "back home",
    ),
    "finance_sponsor": (
        "sponsor", "pay", "fund", "finance", "financing", "cost", "tuition",
        "afford", "expenses", "income",
    ),
    "failure_grades": ("fail", "backlog", "poor grades", "low gpa", "arrear", "bad marks"),
    "us_relatives": ("relatives", "uncle", "aunt", "cousin", "friends living", "friends in"),
    "university_choice": (
        "why this university", "choose this university", "chose this university",
        "this university", "other universities", "universities did you", "apply to",
        "your school",
    ),
    "study_reason": (
        "why study", "why do you want to study", "why us", "why america", "reason for studying",
        "continue your education", "study abroad",
    ),
    "career_plans": ("career", "job plans", "work plans", "professional goals", "kind of job"),
    "scholarship_aid": ("scholarship", "assistantship", "grant", "financial aid"),
    "loan_funding": ("loan", "sanctioned"),
    "bank_evidence": ("bank statement", "28-day", "funds been held", "deposit"),
    "living_budget": ("budget", "each month", "per month", "weekly"),
    "work_rights": ("working in", "working while", "work while", "part-time", "work hours"),
    "accommodation": ("accommodation", "housing", "where will you be living", "where will you live"),
    "test_scores": ("test score", "gmat", "toefl", "ielts", "english proficiency"),
    "academic_record": ("gpa", "grades", "marksheet", "transcript", "qualification"),
    "course_content": ("modules", "curriculum", "main courses", "assessed", "how long is your programme"),
    "agent_involvement": ("agent", "consultant", "agency"),
    "visa_history": ("visa refusal", "refused", "travelled abroad", "traveled abroad", "visited"),
    "research_focus": ("research", "dissertation", "advisor", "professor", "publication", "phd"),
    "home_ties": ("ties to", "property", "home country"),
    "background": ("current employer", "work experience", "past work", "most recent"),
}


def classify(text: str) -> str | None:
    """
    Classify text into a semantic cluster.

    Args:
        text: Question (or any) text

    Returns:
        Cluster name, or None when no cluster keyword occurs
    """
    lowered = text.lower()
    for cluster, phrases in SEMANTIC_CLUSTERS.items():
        if any(phrase in lowered for phrase in phrases):
            return cluster
    return None


def cluster_names() -> list[str]:
    """All cluster names in tie-break order."""
    return list(SEMANTIC_CLUSTERS)
