"""Prompt construction for relevance analysis."""

import logging

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = "[Transcript truncated for analysis]"
SENTENCE_BREAKS = (".", "!", "?", "\n")
# A natural break is only used if it falls in the last 20% of the budget
BREAK_WINDOW = 0.8


def truncate_transcript(transcript: str, budget: int) -> str:
    """Shorten a transcript to roughly ``budget`` characters.

    Cuts after the last sentence terminator or line break when one lies
    within the last 20% of the budget; otherwise hard-cuts at the budget.
    A truncation marker is appended in both cases.
    """
    if len(transcript) <= budget:
        return transcript

    window = transcript[:budget]
    break_at = max(window.rfind(mark) for mark in SENTENCE_BREAKS)

    if break_at >= 0 and break_at + 1 >= budget * BREAK_WINDOW:
        return window[:break_at + 1].rstrip() + "\n\n" + TRUNCATION_MARKER

    return window + "...\n\n" + TRUNCATION_MARKER


class PromptBuilder:
    """Builds bounded-length analysis prompts."""

    def __init__(self, max_transcript_chars: int = 4000, simplified_transcript_chars: int = 1500):
        self.max_transcript_chars = max_transcript_chars
        self.simplified_transcript_chars = simplified_transcript_chars

    def build_analysis_prompt(self, transcript: str, intention: str) -> str:
        """Full prompt asking for the complete analysis schema."""
        excerpt = truncate_transcript(transcript, self.max_transcript_chars)
        if len(excerpt) < len(transcript):
            logger.info(f"Transcript truncated from {len(transcript)} to {len(excerpt)} characters")

        return f"""You are LearnScope, an expert learning advisor who judges how well a video serves a learner's goal.

LEARNING INTENTION
<<<
{intention}
>>>

VIDEO TRANSCRIPT
<<<
{excerpt}
>>>

ASSESS
1. Relevance: how directly the content addresses the learning intention.
2. Efficiency: which parts give the most learning value for the time spent.
3. Progression: which skills or concepts are gained, in what order.
4. Application: how the learner can put the content to use.

OUTPUT
Return exactly one JSON object with this shape and nothing else:

{{
  "matchScore": <integer 0-100>,
  "recommendation": "HIGHLY_RECOMMENDED|RECOMMENDED|PARTIALLY_RELEVANT|NOT_RECOMMENDED",
  "keyPoints": ["<specific skill or concept covered>", "... up to 6"],
  "insights": ["<how the video serves this intention>", "... up to 6"],
  "reasoning": "<why this score: alignment, teaching quality, gaps>",
  "timestamps": [
    {{
      "time": "MM:SS",
      "topic": "<short title of the section>",
      "description": "<what is taught in this section>",
      "relevance": "HIGH|MEDIUM|LOW",
      "skipRecommendation": "MUST_WATCH|RECOMMENDED|OPTIONAL|SKIP",
      "keyTakeaways": "<the 2-3 most important points>",
      "practicalApplication": "<how to apply this section right away>"
    }}
  ],
  "difficultyLevel": "BEGINNER|INTERMEDIATE|ADVANCED",
  "timeEfficiencyTips": ["<e.g. skip the intro, start at 2:30>", "... up to 5"],
  "prerequisiteCheck": "<background knowledge needed>",
  "estimatedLearningTime": "<active learning time estimate>",
  "learningPath": {{
    "beforeWatching": "<preparation>",
    "duringWatching": "<how to watch>",
    "afterWatching": "<practice or next steps>"
  }},
  "contentQuality": {{
    "teachingClarity": "<how clearly concepts are explained>",
    "practicalExamples": "<quality and relevance of the examples>",
    "comprehensiveness": "<how thoroughly the topic is covered for this intention>"
  }}
}}

RULES
• At most 10 timestamps, using MM:SS taken from the transcript where possible.
• Judge against the EXACT learning intention, not the topic in general.
• No markdown, no code fences, no commentary before or after the JSON."""

    def build_simplified_prompt(self, transcript: str, intention: str) -> str:
        """Short prompt asking only for score, recommendation, key points and reasoning."""
        excerpt = truncate_transcript(transcript, self.simplified_transcript_chars)

        return f"""Rate how well this video transcript matches the learning intention.

LEARNING INTENTION: "{intention}"

TRANSCRIPT EXCERPT
<<<
{excerpt}
>>>

Return only this JSON object, with no other text:
{{"matchScore": <integer 0-100>, "recommendation": "HIGHLY_RECOMMENDED|RECOMMENDED|PARTIALLY_RELEVANT|NOT_RECOMMENDED", "keyPoints": ["<up to 4 short points>"], "reasoning": "<one or two sentences>"}}"""
