# -------------------------------------------------------------------------

# CONSTRUCTION FINANCE TERMINOLOGY FOR LLM

# -------------------------------------------------------------------------

FINANCE_TERMINOLOGY = """
Key terminology:
- Original Budget: Initial budgeted amount
- Approved Changes: Sum of approved change orders
- Revised Budget: Original + Approved Changes
- Committed: Amount contracted via POs/subcontracts
- Invoiced: Amount billed by vendors/subs
- Paid: Amount actually paid out
- Remaining: Revised Budget minus Committed (uncommitted funds)
- Overspent: When Committed exceeds Revised Budget
""".strip()

KNOWN_PROJECTS = [
    {
        "code": "PRJ-001",
        "name": "Downtown Office Tower",
        "budget": "$28.5M",
        "description": "18-story office building in Austin, TX",
    },
    {
        "code": "PRJ-002",
        "name": "Riverside Medical Center",
        "budget": "$42M",
        "description": "Hospital facility in Austin, TX",
    },
    {
        "code": "PRJ-003",
        "name": "Lakewood Elementary Renovation",
        "budget": "$8.2M",
        "description": "School renovation in Round Rock, TX",
    },
]

SAMPLE_QUESTIONS = [
    "How much money do I have remaining across all masonry packages?",
    "Which packages are overspent?",
    "Show me committed vs spent vs remaining for the Downtown Office Tower",
    "Give me a budget breakdown by trade for the Medical Center",
    "Drill down into the Electrical trade packages",
]
