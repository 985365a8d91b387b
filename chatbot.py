"""
School assistant chatbot.

One call to the Hugging Face inference API, then the reply is topped up with a
canned school fact picked from the user's message. When the upstream call fails
the canned reply is used on its own.
"""
import logging
from typing import List, Optional, Tuple

import httpx

from config import HF_MODEL, HUGGINGFACE_API_KEY, CHAT_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)

HF_URL = "https://api-inference.huggingface.co/models/{model}"

DEFAULT_REPLY = "I'm sorry, I couldn't understand that. How can I help you with school-related information?"
GENERIC_HELP = (
    "I'm here to help with information about Mbizo High School. I can assist with fees, exams, "
    "events, resources, attendance, and more. What would you like to know?"
)

# Replies that already mention any of these are left alone.
SCHOOL_KEYWORDS = ("school", "mbizo", "zimsec")

CONTACT_DETAILS = (
    "You can reach Mbizo High School at:\n"
    "Phone: +263 40067\n"
    "Email: info@mbizohigh.ac.zw\n"
    "Address: 3VW5+WJF, Mbizo, Kwekwe\n"
    "Office hours: Mon-Fri, 7:30 AM - 4:00 PM"
)

# (triggers, fact appended to a model reply, standalone canned reply); first match wins
TOPICS: List[Tuple[Tuple[str, ...], str, str]] = [
    (
        ("fee", "payment", "pay"),
        "For Mbizo High School, you can pay school fees through our payment portal. We accept EcoCash, "
        "OneMoney, and bank transfers. Term fees are due by the 15th of each month.",
        "You can pay school fees through our payment portal at Mbizo High School. Click on 'EcoCash Payments' "
        "in the features section. We accept EcoCash, OneMoney, and bank transfers. Term fees are due by the "
        "15th of each month.",
    ),
    (
        ("exam", "test", "zimsec"),
        "At Mbizo High School, exam timetables are available in the Notices section. You can also find ZIMSEC "
        "past papers and revision materials in our Resources section.",
        "Exam timetables are available in the Notices section at Mbizo High School. You can also find ZIMSEC "
        "past papers and revision materials in our Resources section. Mid-term exams start next month!",
    ),
    (
        ("event", "calendar", "when"),
        "Check Mbizo High School's Calendar for all upcoming events! Sports Day is on February 15th, "
        "Parent-Teacher meetings are scheduled for the last Friday of each month.",
        "Check our School Calendar for all upcoming events at Mbizo High School! Sports Day is on February 15th, "
        "Parent-Teacher meetings are scheduled for the last Friday of each month.",
    ),
    (
        ("paper", "notes", "study"),
        "Visit Mbizo High School's ZIMSEC Resources section for past papers, study notes, and revision guides "
        "for all subjects. We have materials for both O-Level and A-Level students!",
        "Visit our ZIMSEC Resources section for past papers, study notes, and revision guides for all subjects "
        "at Mbizo High School. We have materials for both O-Level and A-Level students!",
    ),
    (
        ("attendance", "absent", "present"),
        "At Mbizo High School, parents can view their child's attendance in real-time through our Attendance "
        "Tracker. We send SMS notifications for absences. Current term attendance requirement is 85%.",
        "Parents can view their child's attendance in real-time through our Attendance Tracker at Mbizo High "
        "School. We send SMS notifications for absences. Current term attendance requirement is 85%.",
    ),
    (
        ("contact", "email", "phone"),
        CONTACT_DETAILS,
        CONTACT_DETAILS,
    ),
]


def match_topic(message: str) -> Optional[Tuple[Tuple[str, ...], str, str]]:
    lower = message.lower()
    for topic in TOPICS:
        if any(trigger in lower for trigger in topic[0]):
            return topic
    return None


def enhance_with_school_context(reply: str, message: str) -> str:
    lower_reply = reply.lower()
    if any(k in lower_reply for k in SCHOOL_KEYWORDS):
        return reply
    topic = match_topic(message)
    if topic is None:
        return reply
    return f"{reply} {topic[1]}"


def canned_reply(message: str) -> str:
    topic = match_topic(message)
    return topic[2] if topic else GENERIC_HELP


def query_model(message: str) -> str:
    """Call the inference endpoint; raises httpx.HTTPError on any transport or status failure."""
    logger.info("Calling Hugging Face model: %s", HF_MODEL)
    response = httpx.post(
        HF_URL.format(model=HF_MODEL),
        json={
            "inputs": message,
            "parameters": {"max_new_tokens": 128, "temperature": 0.7, "do_sample": True},
        },
        headers={"Authorization": f"Bearer {HUGGINGFACE_API_KEY}"},
        timeout=CHAT_TIMEOUT_SECONDS,
    )
    response.raise_for_status()

    try:
        data = response.json()
    except ValueError:
        return response.text or DEFAULT_REPLY

    if isinstance(data, list) and data:
        data = data[0]
    if isinstance(data, str):
        return data or DEFAULT_REPLY
    if isinstance(data, dict):
        text = data.get("generated_text")
        if isinstance(text, str) and text:
            return text
        if "error" in data:
            logger.warning("HF response error: %s", data["error"])
    return DEFAULT_REPLY


def respond(message: str) -> str:
    try:
        reply = query_model(message)
    except httpx.HTTPStatusError as e:
        logger.error("Chatbot API error: %s", e)
        if e.response.status_code == 410:
            logger.error("Hugging Face model %s returned 410 Gone; it may be retired. Check HF_MODEL.", HF_MODEL)
        return canned_reply(message)
    except httpx.HTTPError as e:
        logger.error("Chatbot API error: %s", e)
        return canned_reply(message)
    return enhance_with_school_context(reply, message)
