"""Step definitions (data-driven) for the two onboarding wizards."""

from wizard.state import Rule, Step, StepKind

# ── Profile wizard ──────────────────────────────────────────────────────
PROFILE_DOMAINS = (
    "Tech", "Marketing", "Sales", "Design", "Finance",
    "Healthcare", "Education", "Gaming", "Content Creation", "Data Science",
)

PROFILE_STEPS: tuple[Step, ...] = (
    Step(0, "email", "What's your email address?", StepKind.FREE_TEXT, Rule.EMAIL),
    Step(1, "name", "What's your name?", StepKind.FREE_TEXT, Rule.NAME),
    Step(2, "domain", "Select your professional domain", StepKind.SINGLE_CHOICE,
         choices=PROFILE_DOMAINS),
)

# ── Company registration wizard ────────────────────────────────────────
COMPANY_INTRO = "Let's set up your company profile"

TECH_DOMAINS = (
    "Web Development", "Mobile Development", "Cloud Computing",
    "AI/Machine Learning", "Cybersecurity", "Data Science",
)

SKILL_SETS = (
    "React", "Node.js", "Python", "Java", "JavaScript",
    "TypeScript", "AWS", "Docker", "Kubernetes",
    "Machine Learning", "SQL", "MongoDB",
)

COMPANY_STEPS: tuple[Step, ...] = (
    Step(0, "company_name", "What's your company name?", StepKind.FREE_TEXT, Rule.NAME),
    Step(1, "tech_domain", "Select your company's primary tech domain",
         StepKind.SINGLE_CHOICE, choices=TECH_DOMAINS),
    Step(2, "required_skills", "Select skill sets required for your team",
         StepKind.MULTI_CHOICE, choices=SKILL_SETS),
)


# Mapping: flow name → (steps, identity field, intro banner, destination)
WIZARDS: dict[str, dict] = {
    "profile": {
        "steps": PROFILE_STEPS,
        "identity_field": "email",
        "intro": None,
        "destination": "socials",
    },
    "company": {
        "steps": COMPANY_STEPS,
        "identity_field": "company_name",
        "intro": COMPANY_INTRO,
        "destination": "company-dashboard",
    },
}
