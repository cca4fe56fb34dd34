"""
Main entry point for the Adaptive Practice Interview Engine.
Provides a CLI interface for running practice sessions.
"""
import logging
import sys

from config import load_settings
from errors import EvaluationUnavailableError, InterviewEngineError
from graph import InterviewRunner
from interview_factory import (
    EngineComponents,
    create_engine_components,
    list_domains,
    start_practice_interview,
)
from reports import build_session_report
from whiteboard import describe_drawing


def print_separator():
    print("=" * 60)


def print_debug_info(runner: InterviewRunner):
    """Print debug information (would be hidden in production)."""
    state = runner.get_state()
    print(
        f"[DEBUG] Difficulty: {state.difficulty.value}, Answers: {state.question_count}, "
        f"Follow-up depth: {state.follow_up_depth}, Low streak: {state.consecutive_low_scores}"
    )
    if state.weak_topics:
        print(f"[DEBUG] Weak topics: {state.weak_topics}")
    if state.last_evaluation:
        evaluation = state.last_evaluation
        print(f"[DEBUG] Covered: {evaluation.covered}")
        print(f"[DEBUG] Missing: {evaluation.missing}")
        print(f"[DEBUG] Matcher: {evaluation.matcher}, confidence {evaluation.confidence}")
    print()


def select_domain(engine: EngineComponents) -> str:
    """Let user select a domain to practice."""
    domains = list_domains(engine)

    if not domains:
        print("No questions found in the banks/ directory.")
        sys.exit(1)

    print("\nAvailable Domains:")
    print("-" * 40)
    for i, domain in enumerate(domains, 1):
        print(f"  {i}. {domain}")
    print()

    while True:
        try:
            choice = input("Select a domain (enter number): ").strip()
            idx = int(choice) - 1
            if 0 <= idx < len(domains):
                return domains[idx]
            print("Invalid selection. Try again.")
        except ValueError:
            print("Please enter a number.")
        except KeyboardInterrupt:
            print("\nGoodbye!")
            sys.exit(0)


def read_drawing(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return describe_drawing(f.read())


def run_interview(engine: EngineComponents, domain: str, difficulty: str, debug: bool = True):
    """Run an interactive practice session."""
    print_separator()
    print("ADAPTIVE PRACTICE INTERVIEW")
    print_separator()
    print(f"\nDomain: {domain}, starting difficulty: {difficulty}\n")

    runner = start_practice_interview(engine, domain=domain, difficulty=difficulty)
    print(f"Interviewer: {runner.get_current_prompt()}\n")

    hint_attempt = 0
    drawing_text = None

    # Conversation loop
    while not runner.is_complete():
        try:
            candidate_input = input("You: ").strip()

            if not candidate_input:
                continue

            command = candidate_input.lower()

            if command in ["quit", "exit", "q"]:
                print("\nAbandoning session...")
                runner.abandon("quit from CLI")
                break

            if command == "end":
                runner.end()
                break

            if command == "debug":
                print_debug_info(runner)
                continue

            if command == "hint":
                hint_attempt += 1
                hint = runner.request_hint(hint_attempt)
                print(f"\n{hint or 'No hints for this question.'}\n")
                continue

            if command == "skip":
                hint_attempt = 0
                next_prompt = runner.get_next_question()
                if next_prompt:
                    print(f"\nInterviewer: {next_prompt}\n")
                continue

            if command.startswith("draw "):
                drawing_text = read_drawing(candidate_input[5:].strip())
                print("\n(Drawing attached to your next answer)\n" if drawing_text else "\n(Drawing is empty)\n")
                continue

            # Process the answer
            try:
                turn = runner.submit_answer(candidate_input, auxiliary_text=drawing_text)
            except EvaluationUnavailableError as e:
                print(f"\nCould not evaluate your answer right now ({e}). Please try again.\n")
                continue
            drawing_text = None

            evaluation = turn.evaluation
            print(f"\nScore: {evaluation.score}/10 ({evaluation.grade})")
            print(f"Feedback: {evaluation.feedback}\n")

            if debug:
                print_debug_info(runner)

            if turn.session_ended:
                print(f"Session ended: {turn.end_reason}\n")
                break

            if not turn.is_follow_up:
                hint_attempt = 0
            print(f"Interviewer: {turn.next_prompt}\n")

        except KeyboardInterrupt:
            print("\n\nAbandoning session...")
            runner.abandon("interrupted")
            break
        except OSError as e:
            print(f"\nCould not read drawing: {e}\n")

    print_summary(runner)


def print_summary(runner: InterviewRunner):
    """Show final results."""
    print_separator()
    print("SESSION COMPLETE")
    print_separator()

    report = build_session_report(runner.get_state(), runner.get_events())

    print(f"\nStatus: {report.status} ({report.end_reason})")
    print(f"Answers: {report.answers}, overall score: {report.overall_score}/10")

    if report.topic_breakdown:
        print("\nTopics:")
        print("-" * 40)
        for topic, summary in report.topic_breakdown.items():
            print(f"  - {topic}: {summary.average}/10 over {summary.questions} answer(s)")

    if report.recommendations:
        print("\nRecommendations:")
        print("-" * 40)
        for recommendation in report.recommendations:
            print(f"  - {recommendation}")

    if len(report.difficulty_progression) > 1:
        print("\nDifficulty Progression:")
        print("-" * 40)
        print(f"  {' -> '.join(report.difficulty_progression)}")

    print()


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Adaptive Practice Interview Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands during a session:
  hint           - Show the next hint for the current question
  skip           - Skip the current question
  draw <file>    - Attach a tldraw snapshot to your next answer
  debug          - Show current state information
  end            - End the session and show the report
  quit, exit, q  - Abandon the session

Examples:
  python main.py                       # Interactive domain selection
  python main.py DSA --difficulty Easy # Start at Easy
  python main.py --keyword-only        # No LLM calls
        """,
    )
    parser.add_argument("domain", nargs="?", help="Domain to practice (optional)")
    parser.add_argument(
        "--difficulty",
        choices=["Easy", "Medium", "Hard"],
        default="Medium",
        help="Starting difficulty",
    )
    parser.add_argument(
        "--keyword-only",
        action="store_true",
        help="Score with keyword matching only",
    )
    parser.add_argument(
        "--no-debug",
        action="store_true",
        help="Hide debug output during the session",
    )
    parser.add_argument(
        "--list",
        action="store_true",
        help="List available domains and exit",
    )
    parser.add_argument("--verbose", action="store_true", help="Show engine logs")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings()
        if args.keyword_only:
            settings.matcher.use_llm = False
        engine = create_engine_components(settings)
    except InterviewEngineError as e:
        print(f"Could not load question banks: {e}")
        sys.exit(1)

    if args.list:
        print("\nAvailable Domains:")
        for domain in list_domains(engine):
            print(f"  - {domain}")
        return

    # Select or use provided domain
    domain = args.domain or select_domain(engine)

    try:
        run_interview(engine, domain, args.difficulty, debug=not args.no_debug)
    except InterviewEngineError as e:
        print(f"\nSession failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
