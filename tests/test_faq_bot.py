import pytest

from barangay_health.modules.faq_bot import FALLBACK_ANSWER, reply


STORED = [
    {'question': "Is it safe to drink coffee while pregnant?", 'answer': "Limit coffee to one cup a day."},
    {'question': "When should I take iron supplements?", 'answer': "Take iron with water, away from tea."},
]


@pytest.mark.parametrize("question, fragment", [
    ("What should I eat?", "leafy greens"),
    ("Can I exercise every day?", "prenatal yoga"),
    ("Where do I see my next appointment?", "'Appointments' section"),
    ("Is this medication okay?", "consult your BHW"),
    ("I need help with my mental health", "feel overwhelmed"),
])
def test_builtin_answers(question, fragment):
    assert fragment in reply(question)


def test_stored_answers_win_over_builtin():
    assert reply("Can I eat and drink coffee?", STORED) == "Limit coffee to one cup a day."


def test_best_overlap_is_chosen():
    assert reply("iron supplements timing", STORED) == "Take iron with water, away from tea."


def test_fallback():
    assert reply("Hello there", STORED) == FALLBACK_ANSWER


def test_blank_question():
    assert reply("   ") is None
    assert reply("") is None
