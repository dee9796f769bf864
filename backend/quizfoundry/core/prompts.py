# backend/quizfoundry/core/prompts.py

import re
from typing import Any, Dict, List, Optional

# ------------------------------------------------------------
# Shared rule blocks
# ------------------------------------------------------------
_QUESTION_RULES = (
    "QUESTION RULES:\n"
    "- Keep each question short and focused (15-20 words at most).\n"
    "- Test one concept or fact per question.\n"
    "- No ambiguous wording and no double negatives; prefer the active voice.\n"
    "- Neither trivially obvious nor impossible for the requested difficulty.\n"
)

_OPTION_RULES = (
    "OPTION RULES:\n"
    "- Keep options short (8-10 words at most) and similar in length.\n"
    "- Wrong options must be believable distractors.\n"
    "- Never use 'all of the above' or 'none of the above'.\n"
    "- Every option must stand on its own, in parallel grammatical form.\n"
)

_DIFFICULTY_GUIDELINES = {
    "easy": (
        "   - Straightforward questions with clear correct answers\n"
        "   - Basic concepts and definitions\n"
        "   - No tricky phrasing\n"
        "   - Answerable with fundamental knowledge\n"
        "   - Simple, plain language"
    ),
    "medium": (
        "   - Some analysis and application of concepts\n"
        "   - A mix of factual and reasoning questions\n"
        "   - Moderate complexity in language and ideas\n"
        "   - May connect several pieces of information\n"
        "   - Balance recall with understanding"
    ),
    "hard": (
        "   - Deep understanding and critical thinking\n"
        "   - Complex scenarios and edge cases\n"
        "   - Advanced knowledge of the topic\n"
        "   - Analysis, synthesis or evaluation\n"
        "   - May need specialist knowledge"
    ),
}


def difficulty_guidelines(difficulty: str) -> str:
    return _DIFFICULTY_GUIDELINES.get(
        difficulty, "   - Adjust difficulty appropriately for the target audience"
    )


def title_from_prompt(prompt: str) -> str:
    """Suggest a title from the first six meaningful words of the prompt."""
    words = re.sub(r"[^\w\s]", "", prompt.lower()).split()
    words = [w for w in words if len(w) > 2][:6]
    title = " ".join(w[:1].upper() + w[1:] for w in words) or "Quiz"
    return f"{title} Quiz"


# ------------------------------------------------------------
# Quiz generation
# ------------------------------------------------------------
QUIZ_SYSTEM = (
    "You are an expert quiz author with broad knowledge across many domains. "
    "You write accurate, engaging and well-structured educational quizzes."
)

QUIZ_USER_TEMPLATE = (
    "Create a {difficulty} difficulty quiz.\n\n"
    "REQUIREMENTS:\n"
    "- Topic: {prompt}\n"
    "- Difficulty: {difficulty}\n"
    "- Number of questions: {question_count}\n"
    "- Options per question: {options_count}\n"
    "- Question type: multiple choice only\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    "{{\n"
    '  "title": "short topic title (max 8 words)",\n'
    '  "description": "1-2 sentences on what the quiz covers",\n'
    '  "difficulty": "{difficulty}",\n'
    '  "questions": [\n'
    "    {{\n"
    '      "question_text": "...?",\n'
    '      "question_type": "multiple_choice",\n'
    '      "order_index": 0,\n'
    '      "options": [\n'
    '        {{"option_text": "...", "is_correct": false, "order_index": 0}},\n'
    '        {{"option_text": "...", "is_correct": true, "order_index": 1}}\n'
    "      ]\n"
    "    }}\n"
    "  ]\n"
    "}}\n\n"
    "GUIDELINES:\n"
    '1. Title should be concise and engaging (suggestion: "{suggested_title}"). '
    'Do not put "quiz" or "quiz on" in it; topic keywords only.\n'
    "2. For {difficulty} difficulty:\n{guidelines}\n"
    "3. Each question has EXACTLY ONE correct answer, and it must be factually right.\n"
    "4. All content relates to: \"{prompt}\"\n"
    "5. order_index starts at 0.\n"
    "6. Exactly {question_count} questions with {options_count} options each.\n"
    "7. No text outside the JSON.\n\n"
    + _QUESTION_RULES + "\n" + _OPTION_RULES + "\n"
    "Generate the quiz now:"
)


def format_quiz_generation(prompt: str, difficulty: str, question_count: int, options_count: int) -> str:
    return QUIZ_USER_TEMPLATE.format(
        prompt=prompt,
        difficulty=difficulty,
        question_count=question_count,
        options_count=options_count,
        suggested_title=title_from_prompt(prompt),
        guidelines=difficulty_guidelines(difficulty),
    )


# ------------------------------------------------------------
# Creative prompt
# ------------------------------------------------------------
CREATIVE_SYSTEM = (
    "You are a creative educational content specialist who comes up with "
    "varied, fun quiz topics with wide appeal."
)

CREATIVE_USER = (
    "Suggest one creative, educational trivia topic that would make a good quiz.\n"
    "Draw on areas such as pop culture, science and nature, history, geography and "
    "world cultures, food, technology, art and literature, sports and video games, "
    "mythology, or general fun facts.\n\n"
    "The answer:\n"
    "- is one sentence (two at most) with no explanation\n"
    "- does not contain the word \"quiz\"\n"
    "- has no markdown, emojis or formatting\n"
    "- avoids dramatic or clickbait phrasing such as \"unsung heroes\" or \"unraveling the secrets\"\n"
    "- uses plain, descriptive language\n\n"
    "Good: \"Iconic video game soundtracks\", \"Solar system planets and their characteristics\"\n"
    "Bad: \"The surprising science behind everyday phenomena\""
)


# ------------------------------------------------------------
# Editing assistance
# ------------------------------------------------------------
ADDITIONAL_QUESTIONS_SYSTEM = (
    "You are an expert quiz author who extends existing quizzes with fresh questions "
    "that match their tone and flow."
)

ADDITIONAL_QUESTIONS_TEMPLATE = (
    "Write {count} more questions for an existing quiz.\n\n"
    "QUIZ:\n"
    "- Title: {title}\n"
    "- Description: {description}\n"
    "- Difficulty: {difficulty}\n"
    "- Original prompt: {original_prompt}\n\n"
    "EXISTING QUESTIONS:\n{existing}\n\n"
    "REQUIREMENTS:\n"
    "- Exactly {count} new questions at {difficulty} difficulty.\n"
    "- Do not repeat existing questions.\n"
    "- Exactly 4 options each, exactly one correct.\n"
    "- Stay on the topic: \"{original_prompt}\"\n"
    "- For {difficulty} difficulty:\n{guidelines}\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    '{{"questions": [{{"question_text": "...?", "question_type": "multiple_choice", "order_index": 0, '
    '"options": [{{"option_text": "...", "is_correct": true, "order_index": 0}}]}}]}}\n\n'
    + _QUESTION_RULES + "\n" + _OPTION_RULES + "\n"
    "Generate the questions now:"
)

ENHANCE_SYSTEM = (
    "You are an educational editor focused on clarity and engagement. "
    "You improve quiz questions without changing what they test."
)

ENHANCE_TEMPLATE = (
    "Improve this quiz question.\n\n"
    "QUESTION:\n{question_text}\n\n"
    "QUIZ:\n"
    "- Title: {title}\n"
    "- Difficulty: {difficulty}\n"
    "- Topic: {original_prompt}\n\n"
    "GOALS:\n"
    "1. Clearer and easier to read.\n"
    "2. Pitched at {difficulty} difficulty:\n{guidelines}\n"
    "3. More engaging, still answerable, same core meaning.\n"
    "4. Fix grammar; 15-20 words at most; no double negatives.\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    '{{"enhanced_question": {{"question_text": "...", "reasoning": "1-2 sentences"}}}}'
)

ADDITIONAL_OPTIONS_SYSTEM = (
    "You are an expert quiz author who writes plausible distractors for "
    "multiple-choice questions."
)

ADDITIONAL_OPTIONS_TEMPLATE = (
    "Write {options_count} more INCORRECT options for this question.\n\n"
    "QUESTION:\n{question_text}\n\n"
    "EXISTING OPTIONS:\n{existing}\n\n"
    "REQUIREMENTS:\n"
    "- Exactly {options_count} new options, all of them wrong answers.\n"
    "- Plausible, reflecting common misconceptions; never silly.\n"
    "- No duplicates of existing options; match their length and style.\n"
    "- order_index starts at 0.\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    '{{"options": [{{"option_text": "...", "is_correct": false, "order_index": 0}}]}}\n\n'
    + _OPTION_RULES
)

QUESTION_TYPES_SYSTEM = (
    "You are an assessment design expert who suggests varied question types "
    "that together test understanding of a topic."
)

QUESTION_TYPES_TEMPLATE = (
    "Suggest 5 question types for a {difficulty} quiz about \"{topic}\".\n\n"
    "For each: a type name, a one or two sentence description, and a short example "
    "question specific to the topic. Types must suit multiple choice and suit "
    "{difficulty} difficulty:\n{guidelines}\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    '{{"suggestions": [{{"type": "Definition Questions", "description": "...", "example": "...?"}}]}}'
)


def _existing_questions_text(questions: List[Dict[str, Any]]) -> str:
    if not questions:
        return "None"
    return "\n".join(f"{i + 1}. {q.get('question_text', '')}" for i, q in enumerate(questions))


def format_additional_questions(context: Dict[str, Any], count: int) -> str:
    return ADDITIONAL_QUESTIONS_TEMPLATE.format(
        count=count,
        title=context["title"],
        description=context.get("description") or "No description provided",
        difficulty=context["difficulty"],
        original_prompt=context["original_prompt"],
        existing=_existing_questions_text(context.get("existing_questions") or []),
        guidelines=difficulty_guidelines(context["difficulty"]),
    )


def format_question_enhancement(question_text: str, context: Dict[str, Any]) -> str:
    return ENHANCE_TEMPLATE.format(
        question_text=question_text,
        title=context["title"],
        difficulty=context["difficulty"],
        original_prompt=context["original_prompt"],
        guidelines=difficulty_guidelines(context["difficulty"]),
    )


def format_additional_options(question_text: str, existing: List[Dict[str, Any]], options_count: int) -> str:
    existing_text = "\n".join(
        f"{i + 1}. {o['option_text']} {'(CORRECT)' if o.get('is_correct') else '(INCORRECT)'}"
        for i, o in enumerate(existing)
    ) or "None"
    return ADDITIONAL_OPTIONS_TEMPLATE.format(
        question_text=question_text, existing=existing_text, options_count=options_count
    )


def format_question_types(topic: str, difficulty: str) -> str:
    return QUESTION_TYPES_TEMPLATE.format(
        topic=topic, difficulty=difficulty, guidelines=difficulty_guidelines(difficulty)
    )


# ------------------------------------------------------------
# Content review
# ------------------------------------------------------------
REVIEW_SYSTEM = (
    "You are a content safety reviewer for an educational quiz platform. "
    "You judge fairly and explain your decisions briefly."
)

REVIEW_TEMPLATE = (
    "Review this user-submitted quiz before it is published.\n\n"
    "Title: {title}\n"
    "Description: {description}\n\n"
    "QUESTIONS:\n{questions}\n\n"
    "Check title, description, questions and options for:\n"
    "1. SAFETY: nothing harmful, offensive, hateful, explicit, dangerous or illegal.\n"
    "2. QUALITY: relevant title and description, clear questions, sensible options, "
    "educational or entertaining, factually accurate.\n"
    "3. AUTHENTICITY: genuine effort, not spam, not misleading.\n\n"
    "Respond with ONLY a JSON object shaped like:\n"
    '{{"isApproved": true, "reasoning": "1-2 sentences", "confidence": 85, "concerns": []}}\n'
    "isApproved is false only for significant violations; confidence is 0-100; "
    "concerns is empty when there are none."
)


def format_review(title: str, description: Optional[str], questions: List[Dict[str, Any]]) -> str:
    blocks = []
    for i, q in enumerate(questions):
        lines = [f"Question {i + 1}: {q.get('question_text', '')}"]
        lines += [f"  {j + 1}. {o.get('option_text', '')}" for j, o in enumerate(q.get("options") or [])]
        blocks.append("\n".join(lines))
    return REVIEW_TEMPLATE.format(
        title=title,
        description=description or "No description provided",
        questions="\n\n".join(blocks),
    )
