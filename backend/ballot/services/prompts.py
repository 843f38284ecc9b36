"""
Prompt Templates Module
=======================
Prompt text and repair schemas for the transcription and judge calls.

This module provides:
- The transcription prompt and its repair schema
- The judge prompt builder (rubric, caps, input data, JSON template)
- The analysis repair schema used by the format-only repair pass
- An estimated time-coded transcript builder for the judge prompt
"""

from typing import List

from ..features import format_duration


RULE = "=" * 78


# =============================================================================
# TRANSCRIPTION
# =============================================================================

TRANSCRIPTION_PROMPT = (
    "You are a speech-to-text transcription engine.\n"
    "Transcribe the spoken audio as accurately as possible.\n"
    "\n"
    "Rules:\n"
    "- Return ONLY valid JSON: {\"transcript\":\"...\"}\n"
    "- If no usable speech is present, return {\"transcript\":\"\"}\n"
    "- Do not add commentary, headings, or extra keys."
)

TRANSCRIPT_REPAIR_SCHEMA = '{"transcript":"<full transcribed text>"}'


# =============================================================================
# TIME-CODED TRANSCRIPT
# =============================================================================

def build_timecoded_transcript(transcript: str, duration_seconds: float, words_per_chunk: int = 36) -> str:
    """
    Split a transcript into labelled chunks with estimated time ranges.

    Times are proportional to word position. Unknown duration yields
    ``[?:??-?:??]`` labels.
    """
    words = (transcript or "").split()
    if not words:
        return ""

    duration = duration_seconds if duration_seconds and duration_seconds > 0 else 0
    chunk_size = max(12, int(words_per_chunk))
    total = len(words)
    lines: List[str] = []

    for start in range(0, total, chunk_size):
        end = min(total, start + chunk_size)
        if duration:
            label = f"[{format_duration(start / total * duration)}-{format_duration(end / total * duration)}]"
        else:
            label = "[?:??-?:??]"
        lines.append(f"{label} {' '.join(words[start:end])}")

    return "\n".join(lines)


# =============================================================================
# JUDGE
# =============================================================================

def _section(title: str) -> str:
    return f"{RULE}\n{title}\n{RULE}"


ANALYSIS_TEMPLATE = """{
  "classification": "normal",
  "capsApplied": false,
  "overallScore": 0.0,
  "performanceTier": "Developing",
  "tournamentReady": false,
  "categoryScores": {
    "content": {"score": 0.0, "weight": 0.40, "weighted": 0.0},
    "delivery": {"score": 0.0, "weight": 0.30, "weighted": 0.0},
    "language": {"score": 0.0, "weight": 0.15, "weighted": 0.0},
    "bodyLanguage": {"score": 0.0, "weight": 0.15, "weighted": 0.0}
  },
  "contentAnalysis": {
    "topicAdherence": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "argumentStructure": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "depthOfAnalysis": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "examplesEvidence": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "timeManagement": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"}
  },
  "deliveryAnalysis": {
    "vocalVariety": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "pacing": {"score": 0.0, "wpm": 0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "articulation": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "fillerWords": {"score": 0.0, "total": 0, "perMinute": 0.0, "breakdown": {}, "feedback": "YOUR_ASSESSMENT_HERE"}
  },
  "languageAnalysis": {
    "vocabulary": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "rhetoricalDevices": {"score": 0.0, "examples": [], "feedback": "YOUR_ASSESSMENT_HERE"},
    "emotionalAppeal": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "logicalAppeal": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"}
  },
  "bodyLanguageAnalysis": {
    "eyeContact": {"score": 0.0, "percentage": 0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "gestures": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "posture": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"},
    "stagePresence": {"score": 0.0, "feedback": "YOUR_ASSESSMENT_HERE"}
  },
  "speechStats": {
    "duration": "0:00",
    "wordCount": 0,
    "wpm": 0,
    "fillerWordCount": 0,
    "fillerWordRate": 0.0
  },
  "structureAnalysis": {
    "introduction": {"timeRange": "0:00-0:00", "assessment": "YOUR_ASSESSMENT_HERE"},
    "bodyPoints": [],
    "conclusion": {"timeRange": "0:00-0:00", "assessment": "YOUR_ASSESSMENT_HERE"}
  },
  "priorityImprovements": [],
  "strengths": [],
  "practiceDrill": "YOUR_DRILL_HERE",
  "nextSessionFocus": {"primary": "YOUR_FOCUS_HERE", "metric": "YOUR_METRIC_HERE"}
}"""


ANALYSIS_REPAIR_SCHEMA = """{
  "classification": <"normal"|"too_short"|"nonsense"|"off_topic"|"mostly_off_topic">,
  "capsApplied": <boolean>,
  "overallScore": <number 0.0-10.0>,
  "performanceTier": <"Developing"|"Competitive"|"Breaking"|"Finals">,
  "tournamentReady": <boolean>,
  "categoryScores": {
    "content": {"score": <number>, "weight": 0.40, "weighted": <number>},
    "delivery": {"score": <number>, "weight": 0.30, "weighted": <number>},
    "language": {"score": <number>, "weight": 0.15, "weighted": <number>},
    "bodyLanguage": {"score": <number>, "weight": 0.15, "weighted": <number>}
  },
  "contentAnalysis": {
    "topicAdherence": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "argumentStructure": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "depthOfAnalysis": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "examplesEvidence": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "timeManagement": {"score": <number>, "feedback": <feedback string max 700 chars>}
  },
  "deliveryAnalysis": {
    "vocalVariety": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "pacing": {"score": <number>, "wpm": <number>, "feedback": <feedback string max 700 chars>},
    "articulation": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "fillerWords": {"score": <number>, "total": <number>, "perMinute": <number>, "breakdown": <object>, "feedback": <feedback string max 700 chars>}
  },
  "languageAnalysis": {
    "vocabulary": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "rhetoricalDevices": {"score": <number>, "examples": <array of strings>, "feedback": <feedback string max 700 chars>},
    "emotionalAppeal": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "logicalAppeal": {"score": <number>, "feedback": <feedback string max 700 chars>}
  },
  "bodyLanguageAnalysis": {
    "eyeContact": {"score": <number>, "percentage": <number 0-100>, "feedback": <feedback string max 700 chars>},
    "gestures": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "posture": {"score": <number>, "feedback": <feedback string max 700 chars>},
    "stagePresence": {"score": <number>, "feedback": <feedback string max 700 chars>}
  },
  "speechStats": {
    "duration": <string like "4:32">,
    "wordCount": <number>,
    "wpm": <number>,
    "fillerWordCount": <number>,
    "fillerWordRate": <number>
  },
  "structureAnalysis": {
    "introduction": {"timeRange": <string like "0:00-0:35">, "assessment": <string>},
    "bodyPoints": [{"timeRange": <string>, "assessment": <string>}],
    "conclusion": {"timeRange": <string>, "assessment": <string>}
  },
  "priorityImprovements": [{"priority": <number>, "issue": <string>, "action": <string>, "impact": <string>, "metric": <string>}],
  "strengths": [<string>, ...],
  "practiceDrill": <string>,
  "nextSessionFocus": {"primary": <string>, "metric": <string>}
}"""


JUDGE_SYSTEM_INSTRUCTION = (
    "You are an expert NSDA impromptu speech judge. "
    "Return only a single valid JSON object that follows the requested template."
)


def build_judge_prompt(
    theme: str,
    quote: str,
    transcript: str,
    duration_seconds: float,
    video_included: bool
) -> str:
    """Build the full judge prompt for one speech."""
    duration_label = format_duration(duration_seconds) if duration_seconds > 0 else "Unknown"
    media_note = (
        "VIDEO: attached. Score body language from what you can see."
        if video_included else
        "VIDEO: not attached (audio only). Body language scores are estimates; "
        "keep them moderate and say so in the feedback."
    )
    timecoded = build_timecoded_transcript(transcript, duration_seconds)

    return f"""
You are a professional NSDA impromptu judge for BALLOT.

{_section("STEP 0: CLASSIFY THE SPEECH (MANDATORY FIRST STEP)")}
Before scoring, you MUST classify the speech into ONE of these categories:

- "normal": Coherent speech addressing the topic with identifiable structure
- "too_short": Speech under 60 seconds OR transcript under 100 words
- "nonsense": Word salad, random words, gibberish, incoherent rambling with no logical thread
- "off_topic": Speech is coherent but completely ignores the quote/theme (discusses unrelated subject)
- "mostly_off_topic": Speech has minimal connection to quote/theme (>70% off-topic content)

HARD SCORE CAPS BY CLASSIFICATION:
- "too_short" / "nonsense" / "off_topic" -> overallScore MAXIMUM 2.5 (all category scores <= 3.0)
- "mostly_off_topic" -> overallScore MAXIMUM 6.0 (content scores <= 5.0)
- "normal" -> No cap; score using full rubric

Set capsApplied=true if any cap was enforced, false otherwise.

{_section("SCORING BANDS (NSDA-calibrated, use full 0-10 range)")}
9.0-10.0: Finals-caliber; exceptional execution, flawless structure, original insights
8.0-8.9:  Breaking rounds; solid competitive performance, clear strengths
7.0-7.9:  Competitive; functional structure, adequate analysis, some weaknesses
5.0-6.9:  Developing; noticeable gaps in structure, depth, or delivery
3.0-4.9:  Significant problems; major fundamental issues
0.0-2.9:  Minimal skill demonstration; incoherent, off-topic, or severely deficient

LENGTH PENALTIES (apply to Content score BEFORE weighted calculation):
- <3:00 -> -2.0 + flag "INSUFFICIENT LENGTH"
- 3:00-3:59 -> -1.0 + note "Below optimal range"
- 4:00-6:00 -> no penalty (optimal)
- >7:00 -> -0.5 to Time Management + flag "EXCEEDS LIMIT"

WEIGHTED FORMULA:
Overall = (Content x 0.40) + (Delivery x 0.30) + (Language x 0.15) + (Body Language x 0.15)

tournamentReady=true ONLY if: overallScore >= 7.5 AND all categories >= 7.0 AND length 4:00-7:00 AND fillers < 8/min AND eye contact > 50%

{_section("INPUT DATA")}
THEME: {theme}
QUOTE: {quote}
DURATION: {round(duration_seconds)}s ({duration_label})
{media_note}

TRANSCRIPT (with estimated time-codes):
\"\"\"
{timecoded}
\"\"\"

{_section("SCORING PROCEDURE (FOLLOW THIS ORDER)")}
1. CLASSIFY first (Step 0 above). Set "classification" field.
2. If classification triggers a cap, apply it. Set "capsApplied" accordingly.
3. For each metric: decide score FIRST based on evidence, THEN write feedback justifying that score.
4. Scores MUST vary: if performance differs across metrics, scores MUST differ by >=0.5 points.
5. Typical spread: scores should range 2+ points (e.g., 5.8 to 8.2). Flat distributions indicate scoring failure.

ANTI-HALLUCINATION: Use ONLY quotes and time ranges from the transcript above. Do NOT invent content.

{_section("FEEDBACK FORMAT REQUIREMENTS")}
Every "feedback" field MUST contain exactly 4 sections with EXACTLY 2 evidence bullets:

**Score Justification:** Why this score, not higher/lower. Reference competitive standard.
**Evidence from Speech:**
- 'exact quote from transcript' [m:ss-m:ss]: why it matters
- 'exact quote from transcript' [m:ss-m:ss]: why it matters
**What This Means:** Competitive implications (2 sentences max).
**How to Improve:**
1. Specific drill
2. Technique to implement
3. Measurable goal

CONSTRAINTS:
- Each feedback string: MAX 700 characters total
- Do NOT reuse any 10+ word phrase across different feedback fields
- Use single quotes for transcript quotes inside JSON strings
- Each priorityImprovements item may carry "metric": the sub-metric it targets
  (e.g. "delivery.pacing", "bodyLanguage.eyeContact") or "length"

{_section("JSON OUTPUT RULES")}
- Return ONLY valid JSON. No markdown, no code fences, no commentary.
- All scores: one decimal (e.g., 6.3, 8.7). Never whole numbers. Never 0-100 scale.
- categoryScores.*.weighted = score x weight. overallScore = sum of weighted.
- CRITICAL: Example values below are INVALID PLACEHOLDERS (all 0.0). NEVER copy scores from examples.
  You MUST compute your own scores based on the actual transcript evidence.

{ANALYSIS_TEMPLATE}
""".strip()
