"""
Detects questions that are not about the user's data, so they can be answered
without fetching a schema or generating SQL.
"""
import re
from typing import Optional

# Greetings and identity questions only count when they are the whole message
_GREETING = re.compile(
    r"^(hi|hello|hey|good morning|good afternoon|good evening|bonjour|hola|salut|ciao)(\s+there)?[\s!.?,]*$"
)
_IDENTITY = re.compile(
    r"^(who are you|what are you|what can you do|how can you help( me)?|help( me)?)[\s!.?]*$"
)
_OFF_TOPIC = re.compile(r"\b(weather|news|joke|game|movie|music|recipe|politics|sports)\b")
_DATABASE_WORDS = re.compile(
    r"(table|database|query|select|data|record|row|column|customer|order|product|employee|user)"
)
_FOREIGN_WORDS = re.compile(r"\b(bonjour|merci|quelle|donde|cómo|cuál|wie|welche)\b|什么|どう|كيف|как|где")

NON_ENGLISH_THRESHOLD = 0.15

NON_ENGLISH_REPLY = (
    "I can only communicate in English. Could you please ask your question in English? "
    "I'm here to help you query your database!\n\n"
    "Example questions:\n"
    "• Show me all customers\n"
    "• How many orders were placed last month?\n"
    "• Find products with price above $100"
)

GREETING_REPLY = (
    "Hello! I'm your AI database assistant. I can help you query and analyze your database "
    "using natural language (in English). Just ask me anything about your data!"
)

IDENTITY_REPLY = (
    "I'm an AI-powered database assistant. I can help you:\n\n"
    "• Query your database using natural language (in English)\n"
    "• Generate and run read-only SQL queries automatically\n"
    "• Handle JOINs, aggregations, subqueries and calculations\n"
    "• Present your data in easy-to-read tables\n"
    "• Work with MySQL, PostgreSQL, Oracle, SQL Server and more\n\n"
    "Example questions:\n"
    "• Show me all customers from California\n"
    "• For each product, show total revenue and quantity sold\n"
    "• Find customers who haven't ordered in the last 6 months"
)

OFF_TOPIC_REPLY = (
    "I'm specifically designed to help you with your database queries. I can answer questions "
    "about your data, tables and records. Please ask me something about your database.\n\n"
    "Try questions like:\n"
    "• Show all customers\n"
    "• How many orders were placed this month?\n"
    "• For each customer, show their total spending"
)


def is_non_english(text: str) -> bool:
    if not text:
        return False
    non_ascii = sum(1 for ch in text if ord(ch) > 127)
    if non_ascii / len(text) > NON_ENGLISH_THRESHOLD:
        return True
    return bool(_FOREIGN_WORDS.search(text.lower()))


def handle_non_database_question(question: str) -> Optional[str]:
    """
    Canned reply for greetings, identity/help questions, off-topic and
    non-English input. Returns None when the question should go to SQL generation.
    """
    lowered = (question or "").lower().strip()

    if is_non_english(question or ""):
        return NON_ENGLISH_REPLY
    if _GREETING.match(lowered):
        return GREETING_REPLY
    if _IDENTITY.search(lowered):
        return IDENTITY_REPLY
    if _OFF_TOPIC.search(lowered) and not _DATABASE_WORDS.search(lowered):
        return OFF_TOPIC_REPLY
    return None
