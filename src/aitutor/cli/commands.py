"""CLI commands for the AI tutor.

Commands:
- serve: Run the Web API
- chat: Talk to the tutor in the terminal
- flashcards: Generate flashcards (optionally saved to a learner's library)
- card-answer: Write the back of a flashcard
- quiz: Take a generated multiple-choice quiz
"""

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from aitutor.config.app_config import load_app_config
from aitutor.core.chat_repository import add_message, new_chat_session, save_chat_session
from aitutor.core.flashcard_generator import (
    FlashcardGenerationError,
    generate_card_answer,
    generate_flashcards,
    to_flashcards,
)
from aitutor.core.library_repository import LibraryError, library_transaction
from aitutor.core.models import Difficulty, LearningStyle, QuizQuestion, UserProfile
from aitutor.core.quiz_generator import (
    QuizGenerationError,
    build_quiz,
    complete_quiz,
    generate_quiz,
)
from aitutor.core.tutor import FALLBACK_REPLY, build_chat_messages
from aitutor.core.usage import (
    check_limit,
    increment_message_count,
    record_quiz_result,
    remaining_messages,
)
from aitutor.core.user_repository import UsersState, load_users_state, users_transaction
from aitutor.llm.client import LLMClient, LLMError
from aitutor.utils.text_utils import strip_think, strip_think_streaming

app = typer.Typer(
    name="tutor",
    help="AI tutor: chat, flashcards and quizzes powered by an LLM.",
    no_args_is_help=True,
)

console = Console()

EXIT_COMMANDS = {"/exit", "/quit", "exit", "quit"}


def _make_client(provider: str | None, model: str | None) -> LLMClient:
    client = LLMClient(provider=provider, model=model)
    console.print(f"  [dim]LLM:[/dim] {client.config.provider}/{client.config.model}")
    return client


def _find_user_or_exit(state: UsersState, user: str) -> UserProfile:
    """Look a learner up by email or id."""
    profile = state.get_user_by_email(user) or state.get_user(user)
    if profile is None:
        console.print(f"[red]✗ User not found: {user}[/red]")
        raise typer.Exit(code=1)
    return profile


def _state_dir() -> Path:
    return load_app_config().state_dir


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(3001, "--port", help="Port to listen on"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the Web API with uvicorn."""
    import uvicorn

    console.print(f"[blue]Serving AI Tutor API on http://{host}:{port}[/blue]")
    uvicorn.run("aitutor.web.api:app", host=host, port=port, reload=reload)


@app.command()
def chat(
    user: str | None = typer.Option(
        None, "-u", "--user", help="Learner email or id (saves the conversation)"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider: gemini, cerebras, groq, openai"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
) -> None:
    """Chat with the tutor. Type /exit to leave."""
    state_dir = _state_dir()
    profile = _find_user_or_exit(load_users_state(state_dir), user) if user else None
    learning_style = profile.learning_style if profile else LearningStyle.VISUAL

    session = new_chat_session(profile.id if profile else "local")
    client = _make_client(provider, model)

    console.print(f"\n[bold green]Tutor:[/bold green] {session.messages[0].text}")

    while True:
        try:
            text = typer.prompt("\nYou", prompt_suffix="> ").strip()
        except (EOFError, typer.Abort):
            break

        if not text:
            continue
        if text.lower() in EXIT_COMMANDS:
            break

        if profile is not None:
            profile = _find_user_or_exit(load_users_state(state_dir), profile.id)
            decision = check_limit(profile, "daily_messages")
            if not decision.allowed:
                console.print(f"[yellow]⚠ {decision.title}[/yellow]")
                console.print(f"  {decision.description}")
                break

        # Welcome message is shown, not sent
        history = session.to_history()[1:]
        messages = build_chat_messages(history, text, learning_style)

        console.print("[bold green]Tutor:[/bold green] ", end="")
        reply_parts = []
        buffer, in_think = "", False
        try:
            for chunk in client.chat_stream(messages):
                output, buffer, in_think = strip_think_streaming(chunk, buffer, in_think)
                if output:
                    reply_parts.append(output)
                    console.print(output, end="", markup=False, highlight=False)
        except LLMError as e:
            console.print(f"\n[red]✗ Error: {e}[/red]")
            continue
        if buffer and not in_think:
            reply_parts.append(buffer)
            console.print(buffer, end="", markup=False, highlight=False)
        console.print()

        reply = strip_think("".join(reply_parts)) or FALLBACK_REPLY
        add_message(session, "user", text)
        add_message(session, "model", reply)

        if profile is not None:
            with users_transaction(state_dir) as users_state:
                profile = _find_user_or_exit(users_state, profile.id)
                increment_message_count(profile)
            save_chat_session(profile.id, session, state_dir)

    if profile is not None and len(session.messages) > 1:
        console.print(
            f"\n[dim]Saved as '{session.title}'. "
            f"{remaining_messages(profile)} messages left today.[/dim]"
        )


@app.command()
def flashcards(
    topic: str = typer.Argument(..., help="Topic for the cards"),
    n: int = typer.Option(5, "-n", help="Number of cards (1-50)"),
    save: bool = typer.Option(False, "--save", help="Save as a set in the user's library"),
    user: str | None = typer.Option(None, "-u", "--user", help="Learner email or id"),
    folder: str | None = typer.Option(None, "--folder", help="Folder id for the new set"),
    title: str | None = typer.Option(None, "--title", help="Set title (default: topic)"),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider: gemini, cerebras, groq, openai"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
) -> None:
    """Generate study flashcards about a topic.

    Example:
        tutor flashcards "photosynthesis" -n 8 --save --user ana@example.com
    """
    if save and not user:
        console.print("[red]✗ --save requires --user[/red]")
        raise typer.Exit(code=1)

    console.print(f"[blue]Generating {n} flashcards about '{topic}'...[/blue]")
    client = _make_client(provider, model)

    try:
        cards = generate_flashcards(topic, client, count=n)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    except (LLMError, FlashcardGenerationError) as e:
        console.print(f"[red]✗ Failed to generate flashcards: {e}[/red]")
        raise typer.Exit(code=1)

    table = Table(title=f"Flashcards: {topic}")
    table.add_column("#", style="dim")
    table.add_column("Front", style="bold")
    table.add_column("Back")
    for i, card in enumerate(cards, 1):
        table.add_row(str(i), card.front, card.back)
    console.print(table)

    if not save:
        return

    state_dir = _state_dir()
    profile = _find_user_or_exit(load_users_state(state_dir), user)

    with library_transaction(profile.id, state_dir) as library:
        decision = check_limit(profile, "flashcard_sets", current_count=len(library.sets))
        if not decision.allowed:
            console.print(f"[yellow]⚠ {decision.title}[/yellow]")
            console.print(f"  {decision.description}")
            raise typer.Exit(code=1)

        try:
            flashcard_set = library.create_set(
                title=title or topic,
                cards=to_flashcards(cards),
                folder_id=folder,
            )
        except LibraryError as e:
            console.print(f"[red]✗ {e}[/red]")
            raise typer.Exit(code=1)

    console.print(f"[green]✓ Saved set '{flashcard_set.title}' ({flashcard_set.id})[/green]")


@app.command(name="card-answer")
def card_answer(
    front: str = typer.Argument(..., help="Front of the card"),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider: gemini, cerebras, groq, openai"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
) -> None:
    """Write a short answer for a flashcard front."""
    client = _make_client(provider, model)
    try:
        answer = generate_card_answer(front, client)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    except LLMError as e:
        console.print(f"[red]✗ Failed to generate answer: {e}[/red]")
        raise typer.Exit(code=1)

    console.print(answer)


def _ask_option(num: int, total: int, question: QuizQuestion) -> int:
    """Ask one question and loop until a valid option number (1..k)."""
    console.print(f"\n[blue]Question {num}/{total}[/blue]")
    console.print(f"[bold]{question.question}[/bold]")
    for idx, option in enumerate(question.options, 1):
        console.print(f"  {idx}. {option}")

    n_options = len(question.options)
    while True:
        raw = typer.prompt(f"Your answer (1-{n_options})")
        try:
            choice = int(raw.strip())
        except ValueError:
            console.print("[yellow]⚠ Enter a number[/yellow]")
            continue
        if 1 <= choice <= n_options:
            return choice - 1
        console.print(f"[yellow]⚠ Must be 1-{n_options}[/yellow]")


@app.command()
def quiz(
    topic: str = typer.Argument(..., help="Topic for the quiz"),
    difficulty: Difficulty = typer.Option(
        Difficulty.INTERMEDIATE, "-d", "--difficulty", help="Beginner, Intermediate or Advanced"
    ),
    n: int = typer.Option(5, "-n", help="Number of questions"),
    user: str | None = typer.Option(
        None, "-u", "--user", help="Learner email or id (records XP)"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="LLM provider: gemini, cerebras, groq, openai"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model name (overrides config)"
    ),
) -> None:
    """Take an interactive multiple-choice quiz.

    Example:
        tutor quiz "World War II" -d Beginner -n 3
    """
    state_dir = _state_dir()
    profile = _find_user_or_exit(load_users_state(state_dir), user) if user else None

    console.print(f"[blue]Generating a {difficulty.value} quiz about '{topic}'...[/blue]")
    client = _make_client(provider, model)

    try:
        questions = generate_quiz(topic, client, difficulty=difficulty, n=n)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    except (LLMError, QuizGenerationError) as e:
        console.print(f"[red]✗ Failed to generate quiz: {e}[/red]")
        raise typer.Exit(code=1)

    generated = build_quiz(topic, questions, difficulty)
    answers: list[int | None] = []
    for i, question in enumerate(generated.questions, 1):
        answer = _ask_option(i, len(generated.questions), question)
        answers.append(answer)
        if question.is_correct(answer):
            console.print("[green]✓ Correct[/green]")
        else:
            correct = question.options[question.correct_index]
            console.print(f"[red]✗ Incorrect.[/red] Answer: {correct}")
        if question.explanation:
            console.print(f"  [dim]{question.explanation}[/dim]")

    grade = complete_quiz(generated, answers)
    console.print(
        f"\n[bold]Score: {grade.score}/{grade.total} ({grade.percentage:.0%})[/bold]"
    )

    if profile is not None:
        with users_transaction(state_dir) as users_state:
            profile = _find_user_or_exit(users_state, profile.id)
            xp_gained = record_quiz_result(profile, grade.score, grade.total)
        console.print(f"[green]+{xp_gained} XP[/green] (level {profile.level}, {profile.xp} XP)")


if __name__ == "__main__":
    app()
