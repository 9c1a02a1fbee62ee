"""Slice keys and first-run defaults for every persisted dataset."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

PROFILE_KEY = "userProfile"
PERSONAL_KEY = "personalAssistant"
HEALTH_KEY = "healthCoach"
FINANCIAL_KEY = "financialAdvisor"
LEARNING_KEY = "learningTutor"
GOOGLE_AUTH_KEY = "googleAuth"

LOG_TYPES = ("water", "sleep", "exercise", "meal", "weight")
TRACKABLE_TYPES = ("water", "sleep", "exercise", "meal")

DEFAULT_UNITS: dict[str, str] = {
    "water": "glasses",
    "sleep": "hours",
    "exercise": "minutes",
    "weight": "lbs",
    "meal": "",
}

DEFAULT_ENABLED_METRICS: dict[str, bool] = {
    "water": True,
    "sleep": True,
    "exercise": True,
    "meal": True,
    "weight": False,
}

DEFAULT_TARGETS: dict[str, float] = {
    "water": 8,
    "sleep": 8,
    "exercise": 30,
    "meal": 3,
    "weight": 150,
}


def default_profile() -> dict[str, Any]:
    return {"name": "", "email": "", "onboardingComplete": False}


def default_personal() -> dict[str, Any]:
    created = datetime.now().isoformat()
    return {
        "preferences": {
            "tone": "professional",
            "autoDraft": True,
            "priorityAlerts": True,
            "traits": [
                "Starts with greeting",
                "Uses bullet points for lists",
                "Ends with clear next steps",
                "Keeps emails concise",
            ],
        },
        "goals": [
            {"id": 1, "title": "Inbox Zero", "description": "Clear all emails by end of day",
             "progress": 65, "completed": False},
            {"id": 2, "title": "Respond to priority contacts within 2 hours",
             "description": "3 priority contacts configured", "progress": 80, "completed": False},
        ],
        "reminders": [
            {"id": 1, "text": "Review and send weekly report", "time": "4:00 PM", "urgent": False},
        ],
        "drafts": [
            {
                "id": 1,
                "to": "Sarah Chen",
                "subject": "Re: Q4 Budget Review",
                "body": "Hi Sarah,\n\nThanks for sending over the Q4 budget details. "
                        "Happy to discuss the contingency fund in our next meeting.\n\nBest,",
                "status": "pending",
                "createdAt": created,
            },
        ],
        "chatHistory": [],
        "priorityContacts": ["Sarah Chen", "Mike Johnson", "Alex Rivera"],
    }


def default_health() -> dict[str, Any]:
    return {
        "goals": [
            {"id": 1, "title": "Sleep 8 hours nightly", "autoTracked": True,
             "trackingType": "sleep", "target": 8},
            {"id": 2, "title": "Drink 8 glasses of water daily", "autoTracked": True,
             "trackingType": "water", "target": 8},
            {"id": 3, "title": "Exercise 30 minutes daily", "autoTracked": True,
             "trackingType": "exercise", "target": 30},
        ],
        "reminders": [],
        "chatHistory": [],
        "dailyLogs": {},
        "enabledMetrics": dict(DEFAULT_ENABLED_METRICS),
        "targets": dict(DEFAULT_TARGETS),
    }


def default_financial() -> dict[str, Any]:
    return {
        "goals": [
            {"id": 1, "title": "Emergency Fund", "description": "Target: $10,000",
             "progress": 72, "completed": False},
            {"id": 2, "title": "Retirement Contribution", "description": "Max out 401k this year",
             "progress": 45, "completed": False},
        ],
        "riskProfile": "moderate",
        "reminders": [],
        "chatHistory": [],
    }


def default_learning() -> dict[str, Any]:
    return {
        "goals": [
            {"id": 1, "title": "Complete Python Basics", "description": "Module 3 of 5",
             "progress": 60, "completed": False},
            {"id": 2, "title": "Read 2 books/month", "description": "Current: None selected",
             "progress": 0, "completed": False},
        ],
        "curriculums": [],
        "reminders": [],
        "chatHistory": [],
        "studyStreak": 0,
    }


# agent name -> (slice key, default factory)
AGENT_SLICES: dict[str, tuple[str, Callable[[], dict[str, Any]]]] = {
    "personal": (PERSONAL_KEY, default_personal),
    "health": (HEALTH_KEY, default_health),
    "financial": (FINANCIAL_KEY, default_financial),
    "learning": (LEARNING_KEY, default_learning),
}

AGENT_NAMES: dict[str, str] = {
    "personal": "Personal Assistant",
    "health": "Health Coach",
    "financial": "Financial Advisor",
    "learning": "Learning Tutor",
}
