"""Evaluation prompts — exam grading and remedial practice grading.

The judge is asked for a single JSON object matching ``GradingResult``.
Asset role labels are emitted as separate text parts immediately before
each asset so the judge can align answer keys with student pages.
"""

from __future__ import annotations

import json

GRADING_PROMPT = """\
You are a senior mathematics teacher with 20 years of experience grading
handwritten exam work.

STUDENT / CLASS: "{student_context}"

GRADING INSTRUCTIONS FROM THE TEACHER:
{instructions}

TASKS:
1. Grade the student's work question by question against the answer key(s).
   Student pages are given in the order they were written; treat page order
   as work order.
2. Transcribe the student's handwriting in full into
   "studentHandwritingTranscription".
3. Assess academic integrity (inconsistent handwriting, machine-generated
   text, signs of copying) in "integrityAnalysis".
4. "textbookKnowledge": summarise the core textbook theory the exam relies on.
5. "solutionMethod": outline the standard step-by-step method for this type
   of problem.
6. If the total score is below the maximum, generate up to 3 similar practice
   problems (same type, different numbers, LaTeX) in "practiceProblems".

Points awarded per question must be between 0 and that question's maximum,
and the total score must not exceed the maximum total score.

Reply with ONE JSON object and nothing else, following this schema:
{schema}
"""

REMEDIATION_PROMPT = """\
You are grading REMEDIAL PRACTICE WORK for student / class: "{student_context}".

PROBLEMS GIVEN TO THE STUDENT:
{problems}

TASKS:
1. Solve the problems above yourself to obtain the reference answers.
2. Grade the uploaded student work against your reference answers, using the
   problem ids as question ids.
3. Comment on whether the student has now understood the method.

Reply with ONE JSON object and nothing else, in exactly the same format as an
exam grading result:
{schema}
"""

GENERAL_KEY_LABEL = "--- GENERAL ANSWER KEY ---"
QUESTION_KEY_LABEL = "--- ANSWER KEY FOR {label} ---"
REFERENCE_LABEL = "--- REFERENCE MATERIAL ---"
STUDENT_WORK_LABEL = "--- STUDENT WORK ---"
STUDENT_PAGE_LABEL = "[Student page {index}]"
REMEDIAL_WORK_LABEL = "--- STUDENT REMEDIAL WORK ---"

_CORRECTION_SCHEMA = {
    "questionId": "string",
    "studentAnswer": "string",
    "correctAnswer": "string",
    "isCorrect": "boolean",
    "explanation": "string",
    "pointsAwarded": "number",
    "maxPoints": "number",
}

_INTEGRITY_SCHEMA = {
    "isSuspicious": "boolean",
    "suspicionLevel": "NONE | LOW | MEDIUM | HIGH",
    "reasons": ["string"],
}

GRADING_RESULT_SCHEMA = {
    "totalScore": "number",
    "maxTotalScore": "number",
    "summary": "string",
    "letterGrade": "string",
    "corrections": [_CORRECTION_SCHEMA],
    "studentHandwritingTranscription": "string",
    "integrityAnalysis": _INTEGRITY_SCHEMA,
    "textbookKnowledge": "string (optional)",
    "solutionMethod": "string (optional)",
    "practiceProblems": [{"id": "string", "content": "string (LaTeX)"}],
}

REMEDIATION_RESULT_SCHEMA = {
    k: v for k, v in GRADING_RESULT_SCHEMA.items() if k != "practiceProblems"
}


def build_grading_prompt(instructions: str, student_context: str) -> str:
    return GRADING_PROMPT.format(
        student_context=student_context or "unknown",
        instructions=instructions.strip() or "(none)",
        schema=json.dumps(GRADING_RESULT_SCHEMA, indent=2),
    )


def build_remediation_prompt(problems: list[tuple[str, str]], student_context: str) -> str:
    """Build the remediation prompt from ``(id, content)`` pairs."""
    lines = "\n".join(f"Problem {pid}: {content}" for pid, content in problems)
    return REMEDIATION_PROMPT.format(
        student_context=student_context or "N/A",
        problems=lines,
        schema=json.dumps(REMEDIATION_RESULT_SCHEMA, indent=2),
    )
