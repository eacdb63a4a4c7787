"""
Chapter-to-chapter continuity text for the short-term memory tier.
"""

from novel_memory.models.novel import Chapter, NovelState, StyleProfile

FIRST_CHAPTER_BRIDGE = (
    "This is the first chapter. Establish the world, protagonist, and initial conflict."
)


def extract_chapter_ending(chapter: Chapter | None, word_count: int = 300) -> str:
    """
    Last ``word_count`` whitespace-separated words of a chapter.

    Chapters shorter than the limit are returned whole (stripped).
    """
    if chapter is None or not chapter.content.strip():
        return ""

    content = chapter.content.strip()
    words = content.split()
    if len(words) <= word_count:
        return content
    return " ".join(words[-word_count:])


def scene_participants(text: str, state: NovelState) -> list[str]:
    """Names of codex characters mentioned in a passage."""
    lowered = text.lower()
    return [c.name for c in state.characters if c.name and c.name.lower() in lowered]


def build_continuity_bridge(
    previous_chapter: Chapter | None,
    next_chapter_number: int,
    state: NovelState,
    ending_words: int = 600,
) -> str:
    """
    Transition block telling the generator exactly where the story stopped.

    Includes the previous chapter's ending verbatim, the characters present
    in it, the logic audit when one was recorded, and the requirement to
    resume from the same moment.
    """
    if previous_chapter is None:
        return FIRST_CHAPTER_BRIDGE

    ending = extract_chapter_ending(previous_chapter, ending_words)
    participants = ", ".join(scene_participants(ending, state)) or "Unclear"
    previous_number = previous_chapter.number

    lines = [
        "[CHAPTER TRANSITION - CRITICAL CONTINUITY CONTEXT]",
        "=== THIS IS THE MOST IMPORTANT SECTION - READ FIRST ===",
        "",
        f'Previous Chapter: Chapter {previous_number} - "{previous_chapter.title}"',
        f"Previous Chapter Ending (last ~{ending_words} words):",
        f'"{ending}"',
        "",
        "SCENE PARTICIPANTS AT CHAPTER END:",
        participants,
        "",
    ]

    opening = (
        f"Chapter {next_chapter_number} MUST begin in the EXACT moment following "
        f"Chapter {previous_number}. "
    )
    no_skip = "Do NOT skip time, change location without explanation, or alter character states. "

    audit = previous_chapter.logic_audit
    if audit is not None:
        lines += [
            "PREVIOUS CHAPTER LOGIC:",
            f"- Starting Value: {audit.starting_value}",
            f"- The Friction: {audit.the_friction}",
            f"- The Choice: {audit.the_choice}",
            f"- Resulting Value: {audit.resulting_value}",
            f"- Causality Type: {audit.causality_type}",
            "",
            "MANDATORY TRANSITION REQUIREMENT:",
        ]
        if audit.causality_type == "But":
            lines.append(
                opening
                + f"The previous chapter ended with a disruption ({audit.the_friction}). "
                + no_skip
                + "Start with the immediate aftermath and how the characters react. "
                + "Do NOT repeat the previous chapter's ending - move forward from it."
            )
        else:
            lines.append(
                opening
                + f"The previous chapter ended with a logical progression ({audit.resulting_value}). "
                + no_skip
                + "Acknowledge the new state, then show the immediate next moment. "
                + "Do NOT repeat what already happened - move forward with the consequences."
            )
    else:
        lines += [
            "MANDATORY TRANSITION REQUIREMENT:",
            opening
            + no_skip
            + "Continue the narrative flow from where the previous chapter ended. "
            + "Do NOT repeat the previous chapter's content - build upon it.",
        ]

    lines += [
        "",
        "=== CONTINUITY SUMMARY ===",
        "Next chapter must start with:",
        f"1. Same scene/setting as Chapter {previous_number} ended",
        f"2. Same characters present ({participants})",
        "3. Immediate next moment - what happens in the next few seconds/minutes",
        "4. NO time skip, NO location change without transition",
    ]
    return "\n".join(lines)


def format_style_profile(profile: StyleProfile | None) -> str:
    """Prose style section; empty when the novel has no analysed profile."""
    if profile is None:
        return ""

    lines = ["[PROSE STYLE PROFILE]"]
    metrics = profile.metrics
    if metrics is not None:
        sentence_length = (
            f"{metrics.average_sentence_length:.1f}"
            if metrics.average_sentence_length
            else "varies"
        )
        lines += [
            f"Sentence Length: {sentence_length} words avg",
            f"Tone: {metrics.tone or 'mixed'}",
            f"Pacing: {metrics.pacing_pattern or 'medium'}",
            f"Dialogue Ratio: {metrics.dialogue_ratio * 100:.0f}%",
        ]

    if profile.style_guidelines:
        lines.append("Guidelines:")
        lines.extend(f"- {guideline}" for guideline in profile.style_guidelines[:3])

    return "\n".join(lines)
