"""
Shared Rubric Configuration
============================
Single source of truth for default criteria, built-in templates and
grade thresholds. Used by the rubric engine, the template store and the
statistics views.
"""

# Minimum percentage classified as passing (informational only)
PASSING_PERCENTAGE = 70

# Grade bands used by the statistics views
EXCELLENT_PERCENTAGE = 90

# Criteria offered when a review starts without a template (sums to 100)
DEFAULT_CRITERIA = [
    {
        "id": "1",
        "name": "Completeness",
        "description": "The portfolio includes every required piece of evidence and document",
        "maxScore": 20,
    },
    {
        "id": "2",
        "name": "Organization",
        "description": "Content is well structured, ordered and easy to navigate",
        "maxScore": 15,
    },
    {
        "id": "3",
        "name": "Quality of Evidence",
        "description": "Evidence clearly demonstrates the learning and competencies acquired",
        "maxScore": 25,
    },
    {
        "id": "4",
        "name": "Presentation",
        "description": "The format is professional, legible and visually appropriate",
        "maxScore": 10,
    },
    {
        "id": "5",
        "name": "Reflection and Analysis",
        "description": "Includes reflections on the learning process and self-assessment",
        "maxScore": 15,
    },
    {
        "id": "6",
        "name": "Achievement of Objectives",
        "description": "Shows the learning objectives of the subject were met",
        "maxScore": 15,
    },
]

# Read-only templates offered to every teacher; never persisted
BUILTIN_TEMPLATES = [
    {
        "id": "default-1",
        "name": "Standard Evaluation",
        "description": "General criteria for academic portfolios",
        "criteria": DEFAULT_CRITERIA,
    },
    {
        "id": "default-2",
        "name": "Simplified Evaluation",
        "description": "Basic criteria for a quick review",
        "criteria": [
            {"id": "1", "name": "Content",
             "description": "Includes all required material with adequate quality", "maxScore": 40},
            {"id": "2", "name": "Organization and Presentation",
             "description": "Well structured with a professional format", "maxScore": 30},
            {"id": "3", "name": "Analysis and Reflection",
             "description": "Shows critical thinking and self-assessment", "maxScore": 30},
        ],
    },
    {
        "id": "default-3",
        "name": "Detailed Evaluation",
        "description": "Thorough evaluation with many criteria",
        "criteria": [
            {"id": "1", "name": "Completeness of Evidence",
             "description": "Every required piece of evidence is present", "maxScore": 15},
            {"id": "2", "name": "Content Quality",
             "description": "Content is relevant, accurate and of high quality", "maxScore": 20},
            {"id": "3", "name": "Organization",
             "description": "Logical structure and easy navigation", "maxScore": 10},
            {"id": "4", "name": "Format and Presentation",
             "description": "Professional, polished look", "maxScore": 10},
            {"id": "5", "name": "Personal Reflection",
             "description": "Deep analysis of the learning", "maxScore": 15},
            {"id": "6", "name": "Link to Objectives",
             "description": "Clear relation to the course objectives", "maxScore": 10},
            {"id": "7", "name": "Creativity and Innovation",
             "description": "Presents original ideas or creative approaches", "maxScore": 10},
            {"id": "8", "name": "References and Sources",
             "description": "Appropriate use of citations and references", "maxScore": 10},
        ],
    },
]

# Total possible points of the default rubric
DEFAULT_TOTAL = sum(c["maxScore"] for c in DEFAULT_CRITERIA)  # 100
