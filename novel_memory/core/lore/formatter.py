"""Render a lore bible as prompt text."""

from novel_memory.models.lore import LoreBible


def format_lore_bible_for_prompt(bible: LoreBible) -> str:
    """Full lore bible section. An empty bible renders as an empty string."""
    if bible.is_empty():
        return ""

    protagonist = bible.protagonist
    anchors = bible.narrative_anchors
    lines: list[str] = [
        "[CULTIVATION LORE BIBLE - SOURCE OF TRUTH]",
        f"As of Chapter {bible.as_of_chapter}",
        "",
        "=== PROTAGONIST STATE ===",
        f"Name: {protagonist.identity.name}",
    ]
    if protagonist.identity.aliases:
        lines.append(f"Aliases: {', '.join(protagonist.identity.aliases)}")
    lines.append(f"Sect: {protagonist.identity.sect}")
    lines.append(f"Cultivation: {protagonist.cultivation.realm} - {protagonist.cultivation.stage}")
    if protagonist.cultivation.physique:
        lines.append(f"Physique: {protagonist.cultivation.physique}")
    if protagonist.techniques:
        lines.append("Techniques:")
        lines.extend(f"  - {t.name} ({t.mastery_level})" for t in protagonist.techniques)
    if protagonist.inventory.equipped:
        lines.append(f"Equipped: {', '.join(i.name for i in protagonist.inventory.equipped)}")
    if protagonist.inventory.storage_ring:
        lines.append(f"Storage: {', '.join(i.name for i in protagonist.inventory.storage_ring)}")
    lines.append("")

    lines += [
        "=== WORLD STATE ===",
        f"Current Realm: {bible.world_state.current_realm}",
        f"Situation: {bible.world_state.current_situation}",
        "",
        "=== NARRATIVE ANCHORS ===",
        f"Last Major Event (Ch {anchors.last_major_event_chapter}): {anchors.last_major_event}",
        f"Current Objective: {anchors.current_objective}",
    ]
    if anchors.active_quests:
        lines.append(f"Active Quests: {', '.join(anchors.active_quests)}")
    if anchors.pending_promises:
        lines.append("Pending Promises:")
        lines.extend(
            f"  - {p.description} (Ch {p.made_in_chapter})" for p in anchors.pending_promises
        )
    lines.append("")

    if bible.power_system.known_level_hierarchy:
        lines.append("=== POWER SYSTEM ===")
        lines.append(f"Protagonist Rank: {bible.power_system.current_protagonist_rank}")
        lines.append(f"Hierarchy: {' > '.join(bible.power_system.known_level_hierarchy)}")
        lines.append("")

    if bible.active_conflicts:
        lines.append("=== ACTIVE CONFLICTS ===")
        lines.extend(f"- {c.description} [{c.urgency.upper()}]" for c in bible.active_conflicts)
        lines.append("")

    if bible.karma_debts:
        lines.append("=== KARMA DEBTS ===")
        lines.extend(
            f"- {k.target} ({k.target_status}): {k.consequence}" for k in bible.karma_debts
        )
        lines.append("")

    if bible.major_characters:
        lines.append("=== KEY CHARACTERS ===")
        for character in bible.major_characters:
            details = [character.name]
            if character.cultivation:
                details.append(character.cultivation)
            if character.relationship_to_protagonist:
                details.append(f"({character.relationship_to_protagonist})")
            lines.append(f"- {' - '.join(details)}")
        lines.append("")

    lines.append("[END LORE BIBLE]")
    return "\n".join(lines)


def format_lore_bible_compact(bible: LoreBible) -> str:
    """Few-line lore bible for tight budgets."""
    if bible.is_empty():
        return ""

    protagonist = bible.protagonist
    lines = [
        f"[LORE BIBLE Ch{bible.as_of_chapter}]",
        f"MC: {protagonist.identity.name} | "
        f"{protagonist.cultivation.realm}-{protagonist.cultivation.stage} | "
        f"{protagonist.identity.sect}",
    ]
    if protagonist.techniques:
        techniques = ", ".join(f"{t.name}({t.mastery_level})" for t in protagonist.techniques)
        lines.append(f"Tech: {techniques}")
    lines.append(f"Objective: {bible.narrative_anchors.current_objective}")
    if bible.active_conflicts:
        lines.append(f"Conflicts: {'; '.join(c.description[:50] for c in bible.active_conflicts)}")
    return "\n".join(lines)
