"""
Keyword FAQ bot for mothers' quick questions.
"""

import re
from typing import Any, Dict, Iterable, Optional

# Checked in order; the first keyword found in the question answers it
BUILTIN_ANSWERS = (
    ('eat', "Focus on leafy greens, fruits, proteins, and whole grains."),
    ('exercise', "Light exercises like walking, swimming, and prenatal yoga are safe."),
    ('appointment', "You can view appointments in the 'Appointments' section."),
    ('medication', "Always consult your BHW or doctor before taking medication."),
    ('mental health', "It's normal to feel overwhelmed. Reach out to your BHW or support groups."),
)

FALLBACK_ANSWER = "I'm still learning. Please ask another question or contact your BHW."

_STOPWORDS = {
    'a', 'an', 'and', 'are', 'can', 'do', 'does', 'for', 'how', 'i', 'in', 'is',
    'it', 'my', 'of', 'on', 'or', 'should', 'the', 'to', 'what', 'when', 'where',
    'which', 'who', 'why', 'with', 'you', 'your',
}


def _keywords(text: str) -> set:
    return {w for w in re.findall(r"[a-z0-9']+", text.lower()) if w not in _STOPWORDS and len(w) > 2}


def reply(question: str, qa_entries: Iterable[Dict[str, Any]] = ()) -> Optional[str]:
    """
    Answer a question from stored Q&A first, then the built-in table.

    Stored entries are ranked by how many keywords they share with the
    question; ties keep the stored order.
    """
    if not question or not question.strip():
        return None

    asked = _keywords(question)
    best, best_overlap = None, 0
    for entry in qa_entries:
        overlap = len(asked & _keywords(entry.get('question') or ''))
        if overlap > best_overlap and entry.get('answer'):
            best, best_overlap = entry['answer'], overlap
    if best:
        return best

    lower = question.lower()
    for keyword, answer in BUILTIN_ANSWERS:
        if keyword in lower:
            return answer
    return FALLBACK_ANSWER
