"""Locally synthesized quiz and manual payloads used when agents are unreachable."""
from __future__ import annotations

import string
from typing import Any, Dict, List, Tuple

# (question template, correct letter, answers, difficulty)
_QUESTION_TEMPLATES: List[Tuple[str, str, Tuple[str, ...], str]] = [
    (
        "What is the main focus of {topic}?",
        "A",
        ("The primary concepts and principles", "Historical background only",
         "Future predictions", "Personal opinions"),
        "medium",
    ),
    (
        "Which of the following is most relevant to {topic}?",
        "B",
        ("Unrelated concepts", "Core principles and applications",
         "Random facts", "Personal anecdotes"),
        "medium",
    ),
    (
        "True or False: {topic} is an important field of study.",
        "A",
        ("True", "False"),
        "easy",
    ),
    (
        "What would be the best way to learn about {topic}?",
        "C",
        ("Avoiding all resources", "Reading only one source",
         "Using multiple resources and practice", "Memorizing without understanding"),
        "easy",
    ),
    (
        "Which skill is most important when studying {topic}?",
        "D",
        ("Avoiding questions", "Memorizing everything",
         "Ignoring details", "Critical thinking and analysis"),
        "hard",
    ),
    (
        "What are the key principles in {topic}?",
        "A",
        ("Fundamental concepts and theories", "Random facts",
         "Personal opinions", "Historical dates only"),
        "medium",
    ),
    (
        "How does {topic} relate to real-world applications?",
        "B",
        ("It doesn't apply anywhere", "Through practical implementation and problem-solving",
         "Only in academic settings", "Through memorization"),
        "medium",
    ),
    (
        "What is the historical significance of {topic}?",
        "C",
        ("No historical importance", "Only recent developments",
         "Evolution and development over time", "Personal stories"),
        "hard",
    ),
    (
        "Which method is most effective for studying {topic}?",
        "A",
        ("Active learning and critical thinking", "Passive reading only",
         "Memorizing without understanding", "Avoiding practice"),
        "easy",
    ),
    (
        "What challenges are commonly faced in {topic}?",
        "D",
        ("No challenges exist", "Only easy problems",
         "Personal issues", "Complex problem-solving and analysis"),
        "hard",
    ),
]


def option_letters(count: int) -> str:
    return string.ascii_uppercase[:count]


def mock_quiz(topic: str, question_count: int) -> Dict[str, Any]:
    """Build exactly ``question_count`` generic multiple-choice questions about ``topic``."""
    questions = []
    for index in range(question_count):
        template, correct, answers, difficulty = _QUESTION_TEMPLATES[
            index % len(_QUESTION_TEMPLATES)
        ]
        questions.append(
            {
                "question": template.format(topic=topic),
                "answers": [{"answer": answer} for answer in answers],
                "correct_answer": correct,
                "difficulty": difficulty,
            }
        )
    return {"topic": topic, "quiz_questions": questions}


def mock_manual(topic: str, prompt: str = "") -> Dict[str, Any]:
    intro_content = f"This section covers the basic concepts and principles of {topic}."
    if prompt:
        intro_content = f"{intro_content} {prompt}"
    return {
        "title": f"Complete Manual: {topic}",
        "introduction": {
            "purpose": f"This manual provides comprehensive coverage of {topic}",
            "objectives": [
                f"Understand the fundamental concepts of {topic}",
                f"Apply {topic} principles in practical scenarios",
                f"Develop expertise in {topic} methodologies",
            ],
        },
        "sections": [
            {
                "title": f"Introduction to {topic}",
                "content": intro_content,
                "keyPoints": [f"Core concepts of {topic}", "Historical development", "Modern applications"],
            },
            {
                "title": "Advanced Concepts",
                "content": f"Deeper exploration of {topic} including advanced theories and methodologies.",
                "keyPoints": ["Advanced theories", "Complex methodologies", "Real-world applications"],
            },
            {
                "title": "Practical Applications",
                "content": f"How to apply {topic} knowledge in real-world scenarios.",
                "keyPoints": ["Case studies", "Best practices", "Common pitfalls"],
            },
        ],
        "conclusion": {
            "summary": f"This manual has covered the essential aspects of {topic}",
            "nextSteps": [
                "Practice with real-world examples",
                "Explore advanced topics",
                "Apply knowledge in projects",
            ],
        },
        "glossary": {
            topic: "The main subject matter covered in this manual",
            "Concept": "A fundamental idea or principle",
            "Methodology": "A systematic approach to solving problems",
        },
    }
