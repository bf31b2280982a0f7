"""Interactive CLI application."""
import logging
import time
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from certbloom.admin import list_questions, question_stats, recategorize_question, update_answer_key
from certbloom.config import DEFAULT_DB_PATH
from certbloom.dashboard import (
    calc_readiness_score, get_concept_progress, get_readiness_color, get_readiness_label,
    get_recommendations, get_study_stats,
)
from certbloom.db import init_db
from certbloom.errors import CertBloomError
from certbloom.importer import import_content, import_questions
from certbloom.models import Question
from certbloom.mood import MoodModulator
from certbloom.scoring import record_attempt, round_half_up
from certbloom.seed import DEMO_USER_ID, is_seeded, seed_all
from certbloom.selector import suggest_next_question
from certbloom.sessions import complete_session, get_session_history, get_setting, plan_session, set_setting
from certbloom.store import (
    ensure_user, get_concept_with_content, get_concepts_for_certification, get_questions_by_ids,
    record_content_engagement,
)

console = Console()

DEFAULT_CERTIFICATION = "texes-902"
EXIT_WORDS = ("q", "menu")
STAGE_COLORS = {"dormant": "dim", "budding": "yellow", "blooming": "cyan", "radiant": "green"}


class SessionExitRequested(Exception):
    """User typed q or menu in the middle of a session."""


def session_prompt(message: str, **kwargs) -> str:
    answer = Prompt.ask(message, **kwargs)
    if answer.strip().lower() in EXIT_WORDS:
        raise SessionExitRequested()
    return answer


def session_int_prompt(message: str, choices: list[str] = None, default: int = None) -> int:
    """Like IntPrompt.ask, but q or menu leaves the session."""
    kwargs = {}
    if choices:
        kwargs["choices"] = list(choices) + list(EXIT_WORDS)
        kwargs["show_choices"] = False
    if default is not None:
        kwargs["default"] = str(default)
    while True:
        answer = session_prompt(message, **kwargs).strip()
        try:
            return int(answer)
        except ValueError:
            console.print("[red]Please enter a valid integer number[/red]")


def configure_logging(level: int = logging.WARNING) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def active_user(db_path: str) -> str:
    return get_setting(db_path, "active_user", DEMO_USER_ID)


def active_certification(db_path: str) -> str:
    return get_setting(db_path, "certification", DEFAULT_CERTIFICATION)


def show_welcome(db_path: str):
    console.print(Panel(
        "[bold]CertBloom[/bold]\n[dim]TExES certification practice[/dim]\n"
        f"Learner: [cyan]{active_user(db_path)}[/cyan]  Certification: [cyan]{active_certification(db_path)}[/cyan]",
        title="Welcome", border_style="green",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("practice", "Mood-aware adaptive practice session"),
        ("drill", "One question at a time with instant feedback"),
        ("study", "Read a concept's explanations and examples"),
        ("dashboard", "Readiness score + concept progress"),
        ("history", "Past session results"),
        ("import", "Import questions or study material"),
        ("admin", "Question bank tools"),
        ("settings", "Learner, certification, mood and length"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def show_question(index: int, total: int, question: Question) -> None:
    console.print(f"[bold]Q{index}/{total}.[/bold] {question.question_text}\n")
    if question.question_type == "multiple_choice":
        for letter, option in zip("abcde", question.options):
            console.print(f"  [cyan]{letter})[/cyan] {option}")
    elif question.question_type == "true_false":
        console.print("  [cyan]true[/cyan] / [cyan]false[/cyan]")


def ask_answer(question: Question) -> str:
    """Prompt until the answer fits the question type; normalized to answer-key form."""
    while True:
        answer = session_prompt("\nYour answer").strip()
        if question.question_type == "multiple_choice":
            letters = "ABCDE"[:len(question.options)]
            if len(answer) == 1 and answer.upper() in letters:
                return answer.upper()
            console.print(f"[red]Choose one of {', '.join(letters.lower())}.[/red]")
        elif question.question_type == "true_false":
            if answer.lower() in ("true", "false", "t", "f"):
                return "true" if answer.lower().startswith("t") else "false"
            console.print("[red]Answer true or false.[/red]")
        elif answer:
            return answer


def run_practice_session(questions: list[Question], break_before: list[int] = ()) -> list[str]:
    """Collect one answer per question, pausing for breaks at the planned positions."""
    answers = []
    for i, question in enumerate(questions):
        if i in break_before:
            console.print(Panel(
                "Take a breath. Stretch, sip some water, then come back.",
                title="Mindful break", border_style="magenta",
            ))
            session_prompt("[dim]Press Enter to continue[/dim]", default="")
        show_question(i + 1, len(questions), question)
        answers.append(ask_answer(question))
        console.print()
    return answers


def show_session_review(questions: list[Question], answers: list[str]) -> None:
    table = Table(title="Answer Review")
    table.add_column("#", justify="right")
    table.add_column("Your answer")
    table.add_column("Correct")
    table.add_column("Explanation", style="dim")
    for i, (q, answer) in enumerate(zip(questions, answers), 1):
        ok = answer == q.correct_answer
        mark = f"[green]{answer}[/green]" if ok else f"[red]{answer}[/red]"
        table.add_row(str(i), mark, q.correct_answer, q.explanation)
    console.print(table)


def cmd_practice(db_path: str):
    user_id = active_user(db_path)
    certification_id = active_certification(db_path)
    modulator = MoodModulator()
    mood = Prompt.ask(
        "How are you feeling?", choices=modulator.moods,
        default=get_setting(db_path, "mood", modulator.resolve(None)),
    )
    length = session_int_prompt(
        "Number of questions", default=int(get_setting(db_path, "session_length", "10")),
    )
    planned = plan_session(
        db_path, user_id, certification_id, mood=mood, session_length=length, modulator=modulator,
    )
    mix = planned.mix
    console.print(Panel(
        f"[italic]{planned.message}[/italic]\n"
        f"Review {mix.review_pct}%  New {mix.new_learning_pct}%  Application {mix.application_pct}%"
        f"  Intensity: {mix.intensity}",
        title=f"Mood: {planned.mood}", border_style="magenta",
    ))
    selection = planned.selection
    if not selection.questions:
        console.print(f"[yellow]{selection.message}[/yellow]")
        return
    style = "green" if selection.is_adaptive else "yellow"
    console.print(f"[{style}]{selection.message}[/{style}]\n")

    by_id = get_questions_by_ids(db_path, selection.question_ids)
    questions = [by_id[qid] for qid in selection.question_ids]
    answers = run_practice_session(questions, planned.break_before)
    outcome = complete_session(
        db_path, planned.session_id, user_id, selection.question_ids, answers, mood=planned.mood,
    )
    result = outcome.result
    color = "green" if result.mastery_achieved else "yellow"
    console.print(Panel(
        f"[bold]{result.correct_answers}/{result.total_questions}[/bold] correct "
        f"([{color}]{result.score_percentage}%[/{color}])"
        + ("\n[green]Mastery achieved![/green]" if result.mastery_achieved else ""),
        title="Session Complete", border_style=color,
    ))
    show_session_review(questions, answers)
    if outcome.failed_updates:
        console.print(
            f"[yellow]{len(outcome.failed_updates)} progress updates could not be saved.[/yellow]"
        )


def cmd_drill(db_path: str):
    user_id = active_user(db_path)
    certification_id = active_certification(db_path)
    console.print("\n[bold]Drill[/bold] [dim](type q to stop)[/dim]\n")
    was_correct = False
    count = 0
    while True:
        pick = suggest_next_question(db_path, user_id, certification_id, was_correct)
        if pick is None:
            console.print("[yellow]No questions available![/yellow]")
            return
        question = get_questions_by_ids(db_path, [pick.question_id])[pick.question_id]
        count += 1
        console.print(f"[dim]{pick.reason}[/dim]")
        show_question(count, count, question)
        answer = ask_answer(question)
        feedback = record_attempt(db_path, user_id, question.id, answer)
        was_correct = feedback.is_correct
        if was_correct:
            console.print(f"[green]Correct![/green] {feedback.encouragement}")
        else:
            console.print(
                f"[red]Incorrect.[/red] Answer: [green]{question.correct_answer}[/green]\n"
                f"{feedback.encouragement}"
            )
        if question.explanation:
            console.print(f"[dim]{question.explanation}[/dim]")
        console.print()


def cmd_study(db_path: str):
    user_id = active_user(db_path)
    concepts = get_concepts_for_certification(db_path, active_certification(db_path))
    if not concepts:
        console.print("[yellow]No concepts for this certification yet.[/yellow]")
        return
    for i, c in enumerate(concepts, 1):
        console.print(f"  [cyan]{i:>2}[/cyan] {c.name}")
    choice = session_int_prompt(
        "\nConcept number", choices=[str(i) for i in range(1, len(concepts) + 1)],
    )
    concept = get_concept_with_content(db_path, concepts[choice - 1].id, user_id)
    progress = concept["progress"]
    mastery = f"  Mastery: {round_half_up(progress.mastery * 100)}%" if progress else ""
    console.print(Panel(
        f"{concept['description'] or ''}{mastery}",
        title=concept["name"], border_style="cyan",
    ))
    items = concept["content_items"]
    if not items:
        console.print("[yellow]No study material yet. Add some with the import command.[/yellow]")
        return
    for i, item in enumerate(items, 1):
        seen = " [dim](seen)[/dim]" if item["viewed"] else ""
        console.print(Panel(
            item["body"], title=f"{item['type'].title()}: {item['title']}{seen}",
            border_style="blue",
        ))
        started = time.monotonic()
        session_prompt(f"[dim]{i}/{len(items)}  Press Enter to continue[/dim]", default="")
        record_content_engagement(
            db_path, user_id, item["id"], int(time.monotonic() - started),
        )
    console.print(f"[green]Finished studying {concept['name']}. Try a practice session next.[/green]")


def cmd_dashboard(db_path: str):
    user_id = active_user(db_path)
    certification_id = active_certification(db_path)
    score = calc_readiness_score(db_path, user_id, certification_id)
    label = get_readiness_label(score)
    color = get_readiness_color(score)
    stats = get_study_stats(db_path, user_id)

    console.print(Panel(
        f"[bold]{certification_id}[/bold] for {user_id}",
        title="Readiness Dashboard", border_style="green",
    ))
    bar_filled = int(score / 5)
    bar = f"[{color}]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/{color}]"
    console.print(f"\n  Overall Readiness: [bold]{score}%[/bold] {bar} [{color}]{label}[/{color}]\n")

    table = Table(title="Concept Progress")
    table.add_column("Domain", style="dim")
    table.add_column("Concept", style="cyan")
    table.add_column("Mastery", justify="right")
    table.add_column("Stage")
    table.add_column("Review")
    for c in get_concept_progress(db_path, user_id, certification_id):
        stage_color = STAGE_COLORS[c["stage"]]
        table.add_row(
            c["domain_name"],
            c["concept_name"],
            f"{c['mastery_pct']}%",
            f"[{stage_color}]{c['stage']}[/{stage_color}]",
            "[yellow]yes[/yellow]" if c["needs_review"] else "",
        )
    console.print(table)

    console.print(f"\n  Sessions: [bold]{stats['sessions_completed']}[/bold]  |  "
                  f"Mastered: [bold]{stats['sessions_mastered']}[/bold]  |  "
                  f"Avg Score: [bold]{stats['avg_session_score']}%[/bold]  |  "
                  f"Accuracy: [bold]{stats['accuracy']}%[/bold]")

    weak = get_recommendations(db_path, user_id, certification_id)["weak_areas"]
    if weak:
        console.print(f"\n  [yellow]Recommendation: Focus on {weak[0]['concept_name']}[/yellow]")


def cmd_history(db_path: str):
    history = get_session_history(db_path, active_user(db_path))
    if not history:
        console.print("[yellow]No sessions completed yet.[/yellow]")
        return
    table = Table(title="Session History")
    table.add_column("Completed")
    table.add_column("Mood")
    table.add_column("Score", justify="right")
    table.add_column("Mastery")
    for r in history:
        table.add_row(
            r.completed_at[:16].replace("T", " "),
            r.mood or "",
            f"{r.correct_answers}/{r.total_questions} ({r.score_percentage}%)",
            "[green]yes[/green]" if r.mastery_achieved else "",
        )
    console.print(table)


def cmd_import(db_path: str):
    kind = Prompt.ask("Import", choices=["questions", "content"], default="questions")
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    if kind == "questions":
        result = import_questions(db_path, file_path)
        console.print(f"[green]{result['message']}[/green]")
        for error in result["errors"]:
            console.print(f"  [red]{error}[/red]")
        return
    concept_id = Prompt.ask("Concept id (blank to auto-detect)", default="") or None
    result = import_content(db_path, file_path, concept_id=concept_id)
    console.print(
        f"[green]Imported {result['filename']} ({result['length']} chars) → {result['concept_id']}[/green]"
    )


def cmd_admin(db_path: str):
    action = Prompt.ask(
        "Admin action", choices=["list", "stats", "answer-key", "recategorize"], default="stats",
    )
    if action == "stats":
        stats = question_stats(db_path)
        table = Table(title=f"Question Bank ({stats['total']} questions)")
        table.add_column("Group")
        table.add_column("Value", style="cyan")
        table.add_column("Count", justify="right")
        for group in ("by_certification", "by_difficulty", "by_type"):
            for value, count in stats[group].items():
                table.add_row(group.replace("by_", ""), value, str(count))
        table.add_row("uncategorized", "", str(stats["uncategorized"]))
        console.print(table)
    elif action == "list":
        rows = list_questions(db_path, certification_id=active_certification(db_path))
        table = Table(title="Questions")
        table.add_column("Id", style="cyan")
        table.add_column("Concept")
        table.add_column("Tier")
        table.add_column("Key")
        table.add_column("Question")
        for r in rows:
            table.add_row(
                r["id"], r["concept_id"] or "", r["difficulty_level"], r["correct_answer"],
                r["question_text"][:60],
            )
        console.print(table)
    elif action == "answer-key":
        question_id = Prompt.ask("Question id")
        answer = update_answer_key(db_path, question_id, Prompt.ask("Correct answer"))
        console.print(f"[green]Answer key for {question_id} is now {answer}[/green]")
    else:
        question_id = Prompt.ask("Question id")
        concept_id = Prompt.ask("New concept id")
        recategorize_question(db_path, question_id, concept_id)
        console.print(f"[green]Moved {question_id} to {concept_id}[/green]")


def cmd_settings(db_path: str):
    user_id = Prompt.ask("Learner id", default=active_user(db_path)).strip()
    ensure_user(db_path, user_id)
    set_setting(db_path, "active_user", user_id)
    set_setting(db_path, "certification", Prompt.ask(
        "Certification", default=active_certification(db_path),
    ).strip())
    modulator = MoodModulator()
    set_setting(db_path, "mood", Prompt.ask(
        "Preferred mood", choices=modulator.moods,
        default=get_setting(db_path, "mood", modulator.resolve(None)),
    ))
    length = IntPrompt.ask(
        "Session length", default=int(get_setting(db_path, "session_length", "10")),
    )
    set_setting(db_path, "session_length", str(length))
    console.print("[green]Settings saved.[/green]")


def main(db_path: str = DEFAULT_DB_PATH):
    configure_logging()
    init_db(db_path)
    first_run = not is_seeded(db_path)
    if first_run:
        console.print("[dim]Setting up for first use...[/dim]")
    seed_all(db_path)
    if first_run:
        console.print("[green]Ready![/green]\n")

    show_welcome(db_path)

    while True:
        show_menu()
        choice = Prompt.ask("\n[bold]>[/bold]", default="practice").strip().lower()
        try:
            if choice == "practice":
                cmd_practice(db_path)
            elif choice == "drill":
                cmd_drill(db_path)
            elif choice == "study":
                cmd_study(db_path)
            elif choice == "dashboard":
                cmd_dashboard(db_path)
            elif choice == "history":
                cmd_history(db_path)
            elif choice == "import":
                cmd_import(db_path)
            elif choice == "admin":
                cmd_admin(db_path)
            elif choice == "settings":
                cmd_settings(db_path)
            elif choice in ("quit", "exit", "q"):
                console.print("[dim]Keep blooming. Good luck on your exam![/dim]")
                break
            else:
                console.print("[red]Unknown command. Try again.[/red]")
        except SessionExitRequested:
            console.print("\n[dim]Back to the menu. Unfinished sessions are not saved.[/dim]")
        except KeyboardInterrupt:
            console.print("\n[dim]Use 'quit' to exit.[/dim]")
        except CertBloomError as e:
            console.print(f"[red]Error: {e}[/red]")


if __name__ == "__main__":
    main()
