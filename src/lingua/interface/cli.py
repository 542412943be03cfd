"""Lingua CLI: card management, preferences, terminal practice and the HTTP daemon."""

import asyncio
import json
import logging
import random
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from lingua.application.config import AppConfig, resolve_config
from lingua.domain.errors import LinguaError
from lingua.domain.exercise import ExerciseCategory, ExerciseType
from lingua.domain.models import Card

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="lingua: flashcard practice with per-exercise spaced repetition.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

prefs_app = typer.Typer(help="Choose which exercise types to practice.", no_args_is_help=True)
app.add_typer(prefs_app, name="prefs")

config_app = typer.Typer(help="Inspect lingua configuration.")
app.add_typer(config_app, name="config")

SKIP_COMMAND = "/skip"
QUIT_COMMAND = "/quit"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    config = resolve_config(overrides)
    if config.verbose >= 2:
        logging.getLogger().setLevel(logging.DEBUG)
    return config


def _run(coro):
    """Run a coroutine, turning domain errors into a red message and exit code 1."""
    try:
        return asyncio.run(coro)
    except LinguaError as e:
        typer.secho(f"Error: {e}", fg="red")
        raise typer.Exit(1)


def _card_service(config: AppConfig):
    from lingua.application.card_service import CardService
    from lingua.application.factory import get_card_repository

    return CardService(get_card_repository(config))


def _preferences_service(config: AppConfig):
    from lingua.application.factory import get_preferences_repository
    from lingua.application.preferences_service import ExercisePreferencesService

    return ExercisePreferencesService(get_preferences_repository(config))


def _parse_exercise_type(value: str) -> ExerciseType:
    key = value.strip().lower().replace("-", "_")
    try:
        exercise_type = ExerciseType(key)
    except ValueError:
        exercise_type = None
    if exercise_type is None or not exercise_type.is_implemented:
        choices = ", ".join(t.value for t in ExerciseType.implemented())
        typer.secho(f"Unknown exercise type '{value}'. Choose from: {choices}", fg="red")
        raise typer.Exit(2)
    return exercise_type


def _parse_category(value: str) -> ExerciseCategory:
    try:
        return ExerciseCategory(value.strip().lower())
    except ValueError:
        choices = ", ".join(c.value for c in ExerciseCategory)
        typer.secho(f"Unknown category '{value}'. Choose from: {choices}", fg="red")
        raise typer.Exit(2)


def _card_line(card: Card) -> str:
    flags = ""
    if card.is_favorite:
        flags += " *"
    if card.is_archived:
        flags += " (archived)"
    return f"{card.id}  {card.front_text} -> {card.back_text}  [{card.language}]{flags}"


def _echo_cards_json(cards: list[Card]) -> None:
    typer.echo(json.dumps([c.to_dict() for c in cards], indent=2, ensure_ascii=False))


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
):
    """Global settings for lingua."""
    ctx.ensure_object(dict)
    ctx.obj["verbose_bonus"] = verbose


# ---------------------------------------------------------------------------
# Card commands
# ---------------------------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    front: Annotated[str, typer.Argument(help="Word or phrase in the target language.")],
    back: Annotated[str, typer.Argument(help="Translation.")],
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Language code, e.g. 'de'.")
    ] = None,
    category: Annotated[str, typer.Option(help="Free-form category.")] = "",
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Tag. Repeat for more.")
    ] = None,
    difficulty: Annotated[int, typer.Option(help="Difficulty from 1 to 5.")] = 1,
    notes: Annotated[str | None, typer.Option(help="Free-form notes.")] = None,
    example: Annotated[
        list[str] | None,
        typer.Option("--example", "-e", help="Example sentence. Repeat for more."),
    ] = None,
    article: Annotated[
        str | None, typer.Option(help="Grammatical article (der, die, das).")
    ] = None,
):
    """[bold green]Add[/bold green] a card to the deck."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    lang = language or config.language
    if not lang:
        typer.secho("No language given. Pass --language or set 'language' in config.", fg="red")
        raise typer.Exit(2)

    card = _run(
        _card_service(config).create_card(
            front_text=front,
            back_text=back,
            language=lang,
            category=category,
            tags=tag or (),
            difficulty=difficulty,
            notes=notes,
            examples=example or (),
            german_article=article,
        )
    )
    typer.secho(f"Added {card.id}", fg="green")


@app.command("list")
def list_cmd(
    ctx: typer.Context,
    include_archived: Annotated[
        bool, typer.Option("--all", "-a", help="Include archived cards.")
    ] = False,
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
    tag: Annotated[str | None, typer.Option("--tag", "-t")] = None,
    favorites: Annotated[bool, typer.Option("--favorites", help="Only favorites.")] = False,
    search: Annotated[
        str | None, typer.Option("--search", "-s", help="Search front, back and notes.")
    ] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List cards in the deck."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    cards = _run(
        _card_service(config).list_cards(
            include_archived=include_archived,
            language=language.lower() if language else None,
            tag=tag,
            favorites_only=favorites,
            query=search,
        )
    )

    if json_output:
        _echo_cards_json(cards)
        return
    if not cards:
        typer.secho("No cards found.", fg="yellow")
        return
    for card in cards:
        typer.echo(_card_line(card))
    typer.echo(f"\n{len(cards)} cards")


@app.command()
def due(
    ctx: typer.Context,
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show cards with at least one enabled exercise due."""
    config = _resolve_with_overrides(
        language=language, verbose=ctx.obj.get("verbose_bonus", 1)
    )

    async def run():
        preferences = await _preferences_service(config).load()
        return preferences, await _card_service(config).due_cards(
            preferences, config.language or None
        )

    preferences, cards = _run(run())

    if json_output:
        _echo_cards_json(cards)
        return
    if not cards:
        typer.secho("Nothing is due.", fg="green")
        return
    for card in cards:
        types = [t.value for t in card.due_exercise_types() if preferences.is_enabled(t)]
        typer.echo(f"{_card_line(card)}  due: {', '.join(types)}")
    typer.echo(f"\n{len(cards)} cards due")


@app.command()
def favorite(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
):
    """Toggle the favorite flag of a card."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    card = _run(_card_service(config).toggle_favorite(card_id))
    state = "now" if card.is_favorite else "no longer"
    typer.echo(f"{card.id} is {state} a favorite.")


@app.command()
def archive(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    undo: Annotated[bool, typer.Option("--undo", help="Unarchive instead.")] = False,
):
    """Archive a card so it no longer appears in practice."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    card = _run(_card_service(config).set_archived(card_id, archived=not undo))
    typer.echo(f"{card.id} {'archived' if card.is_archived else 'restored'}.")


@app.command()
def edit(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    front: Annotated[str | None, typer.Option("--front", help="New front text.")] = None,
    back: Annotated[str | None, typer.Option("--back", help="New translation.")] = None,
    tag: Annotated[
        list[str] | None, typer.Option("--tag", "-t", help="Replace the tags. Repeat for more.")
    ] = None,
    difficulty: Annotated[int | None, typer.Option(help="Difficulty from 1 to 5.")] = None,
    notes: Annotated[str | None, typer.Option(help="Free-form notes.")] = None,
    article: Annotated[str | None, typer.Option(help="Grammatical article.")] = None,
):
    """Edit the content of a card. Practice history is kept."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    changes = {
        "front_text": front,
        "back_text": back,
        "tags": tag,
        "difficulty": difficulty,
        "notes": notes,
        "german_article": article,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        typer.secho("Nothing to change. Pass at least one option.", fg="yellow")
        raise typer.Exit(2)

    card = _run(_card_service(config).update_card(card_id, **changes))
    typer.echo(_card_line(card))


@app.command()
def delete(
    ctx: typer.Context,
    card_id: Annotated[str, typer.Argument(help="Card id.")],
    force: Annotated[
        bool, typer.Option("--force", "-f", help="Bypass confirmation.")
    ] = False,
):
    """Delete a card permanently."""
    config = _resolve_with_overrides(verbose=ctx.obj.get("verbose_bonus", 1))
    if not force and not typer.confirm(f"Delete {card_id}?", default=False):
        raise typer.Exit()
    _run(_card_service(config).delete_card(card_id))
    typer.secho(f"Deleted {card_id}", fg="green")


@app.command()
def stats(
    ctx: typer.Context,
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show mastery statistics for the deck."""
    from lingua.application.stats import MasteryCalculator

    config = _resolve_with_overrides(
        language=language, verbose=ctx.obj.get("verbose_bonus", 1)
    )
    cards = _run(
        _card_service(config).list_cards(
            include_archived=True, language=config.language or None
        )
    )
    summary = MasteryCalculator().summarize(cards)

    if json_output:
        typer.echo(
            json.dumps(
                {
                    "total_cards": summary.total_cards,
                    "archived_cards": summary.archived_cards,
                    "due_cards": summary.due_cards,
                    "card_levels": summary.card_levels,
                    "exercise_levels": summary.exercise_levels,
                    "by_type": [
                        {
                            "exercise_type": s.exercise_type.value,
                            "cards": s.cards,
                            "attempts": s.attempts,
                            "correct": s.correct,
                            "success_rate": s.success_rate,
                            "mastered": s.mastered,
                            "due": s.due,
                        }
                        for s in summary.by_type
                    ],
                },
                indent=2,
            )
        )
        return

    typer.echo(
        f"Cards: {summary.total_cards}  Archived: {summary.archived_cards}"
        f"  Due: {summary.due_cards}"
    )
    typer.echo("\nCard mastery:")
    for level, count in summary.card_levels.items():
        typer.echo(f"  {level:<10} {count}")
    if summary.by_type:
        typer.echo("\nBy exercise type:")
        for s in summary.by_type:
            rate = "-" if s.success_rate is None else f"{s.success_rate:.0f}%"
            typer.echo(
                f"  {s.exercise_type.display_name:<24} attempts {s.attempts:>4}"
                f"  success {rate:>4}  mastered {s.mastered}  due {s.due}"
            )


# ---------------------------------------------------------------------------
# Practice
# ---------------------------------------------------------------------------


def _ask(prompt) -> str | bool | None:
    """
    Present one exercise and collect the learner's response.

    Returns the typed answer, a bool for self-graded exercises, the skip
    command, or None to quit.
    """
    typer.secho(f"  {prompt.question}", bold=True)
    if prompt.hint:
        typer.echo(f"  ({prompt.hint})")

    if prompt.self_graded:
        reply = typer.prompt("  Press Enter to reveal", default="", show_default=False).strip()
        if reply == QUIT_COMMAND:
            return None
        if reply == SKIP_COMMAND:
            return reply
        typer.echo(f"  = {prompt.expected}")
        return typer.confirm("  Did you know it?", default=True)

    if prompt.options:
        for i, option in enumerate(prompt.options, 1):
            typer.echo(f"  {i}. {option}")

    reply = typer.prompt("  Answer", default="", show_default=False).strip()
    if reply == QUIT_COMMAND:
        return None
    if reply == SKIP_COMMAND:
        return reply
    if prompt.options and reply.isdigit() and 1 <= int(reply) <= len(prompt.options):
        return prompt.options[int(reply) - 1]
    return reply


async def _confirm(session, correct: bool) -> bool:
    """Persist the answer, offering a retry while saving fails."""
    while not await session.confirm_answer_and_advance(correct):
        typer.secho(f"Could not save: {session.state.last_error}", fg="red")
        if not typer.confirm("Retry?", default=True):
            return False
    return True


async def _run_practice(config: AppConfig, limit: int | None) -> None:
    from lingua.application.exercises import answers_match, build_prompt
    from lingua.application.factory import get_card_repository
    from lingua.application.queue_builder import filter_for_practice
    from lingua.application.session import PracticeSession, SessionStatus

    repository = get_card_repository(config)
    preferences = await _preferences_service(config).load()
    if not preferences.has_any_enabled:
        typer.secho("All exercise types are disabled. Enable some with 'lingua prefs'.", fg="yellow")
        return

    pool = [c for c in await repository.list_cards() if not c.is_archived]
    cards = filter_for_practice(pool, preferences, config.language or None)
    if limit:
        cards = cards[:limit]

    async def on_complete(total: int) -> None:
        typer.secho(f"\nSession complete: {total} exercises reviewed.", fg="green")

    rng = random.Random(config.seed)
    session = PracticeSession(
        repository,
        on_session_complete=on_complete,
        persist_timeout=config.persist_timeout,
        rng=rng,
    )
    state = session.start_session(cards, preferences, pool=pool)
    if state.status is SessionStatus.EMPTY:
        typer.secho("Nothing to practice right now.", fg="green")
        return

    typer.echo(f"Type {SKIP_COMMAND} to skip an exercise or {QUIT_COMMAND} to stop.")
    while session.state.is_active:
        state = session.state
        item = state.current_item
        prompt = build_prompt(item, state.options, rng=rng)
        typer.secho(
            f"\n[{state.current_index + 1}/{state.total_count}] "
            f"{item.exercise_type.display_name}",
            fg="cyan",
        )

        reply = _ask(prompt)
        if reply is None:
            session.end_session()
            break
        if reply == SKIP_COMMAND:
            if not await session.skip_exercise():
                typer.secho(f"Could not skip: {session.state.last_error}", fg="red")
                session.end_session()
            continue

        if isinstance(reply, bool):
            session.check_answer(reply)
        else:
            session.update_user_input(reply)
            correct = answers_match(reply, prompt.expected)
            session.check_answer(correct)
            if correct:
                typer.secho("  Correct!", fg="green")
            else:
                typer.secho(f"  Expected: {prompt.expected}", fg="red")
                if typer.confirm("  Count it as correct anyway?", default=False):
                    session.override_answer(True)

        if not await _confirm(session, bool(session.state.current_answer_correct)):
            session.end_session()

    final = session.state
    typer.echo(
        f"Correct: {final.correct_count}  Incorrect: {final.incorrect_count}"
        f"  Accuracy: {final.accuracy:.0%}"
    )


@app.command()
def practice(
    ctx: typer.Context,
    language: Annotated[
        str | None, typer.Option("--language", "-l", help="Only practice this language.")
    ] = None,
    limit: Annotated[
        int | None, typer.Option(help="Maximum number of cards in the session.")
    ] = None,
    seed: Annotated[int | None, typer.Option(help="Random seed for ordering.")] = None,
):
    """[bold green]Practice[/bold green] due exercises in the terminal."""
    config = _resolve_with_overrides(
        language=language, seed=seed, verbose=ctx.obj.get("verbose_bonus", 1)
    )
    _run(_run_practice(config, limit))


# ---------------------------------------------------------------------------
# Prefs subgroup
# ---------------------------------------------------------------------------


def _echo_preferences(preferences) -> None:
    for category in ExerciseCategory:
        typer.secho(f"{category.display_name}:", bold=True)
        for exercise_type in category.exercise_types:
            mark = "x" if preferences.is_enabled(exercise_type) else " "
            typer.echo(f"  [{mark}] {exercise_type.value:<24} {exercise_type.display_name}")
    prioritize = "on" if preferences.prioritize_weaknesses else "off"
    typer.echo(
        f"\nPrioritize weaknesses: {prioritize}"
        f"  (threshold {preferences.weakness_threshold:g}%)"
    )


@prefs_app.command("show")
def prefs_show(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show the enabled exercise types."""
    config = _resolve_with_overrides()
    preferences = _run(_preferences_service(config).load())
    if json_output:
        typer.echo(json.dumps(preferences.to_dict(), indent=2))
        return
    _echo_preferences(preferences)


@prefs_app.command("toggle")
def prefs_toggle(
    exercise_type: Annotated[str, typer.Argument(help="Exercise type, e.g. reverse_translation.")],
):
    """Enable or disable a single exercise type."""
    parsed = _parse_exercise_type(exercise_type)
    config = _resolve_with_overrides()

    async def run():
        service = _preferences_service(config)
        await service.load()
        return await service.toggle_type(parsed)

    preferences = _run(run())
    state = "enabled" if preferences.is_enabled(parsed) else "disabled"
    typer.echo(f"{parsed.display_name} {state}.")


@prefs_app.command("category")
def prefs_category(
    category: Annotated[str, typer.Argument(help="recognition or production.")],
    enable: Annotated[
        bool, typer.Option("--enable/--disable", help="Enable or disable the whole category.")
    ] = True,
):
    """Enable or disable every exercise type in a category."""
    parsed = _parse_category(category)
    config = _resolve_with_overrides()

    async def run():
        service = _preferences_service(config)
        await service.load()
        return await service.toggle_category(parsed, enable)

    _echo_preferences(_run(run()))


@prefs_app.command("prioritize")
def prefs_prioritize(
    on: Annotated[bool, typer.Option("--on/--off", help="Weakest exercise first.")] = True,
    threshold: Annotated[
        float | None, typer.Option(help="Success rate below which a type counts as weak.")
    ] = None,
):
    """Turn weakness prioritization on or off."""
    config = _resolve_with_overrides()

    async def run():
        service = _preferences_service(config)
        await service.load()
        if threshold is not None:
            await service.set_weakness_threshold(threshold)
        return await service.set_prioritize_weaknesses(on)

    preferences = _run(run())
    typer.echo(f"Prioritize weaknesses: {'on' if preferences.prioritize_weaknesses else 'off'}")


@prefs_app.command("reset")
def prefs_reset():
    """Restore the default exercise preferences."""
    config = _resolve_with_overrides()
    _echo_preferences(_run(_preferences_service(config).reset_to_defaults()))


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show():
    """Display final resolved configuration."""
    config = resolve_config()
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the practice HTTP daemon."""
    import uvicorn

    typer.secho(f"Starting lingua server on http://{host}:{port}", fg="green")
    uvicorn.run("lingua.server:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
