#!/usr/bin/env python3
"""
Debug CLI Tool
==============

Command-line interface for inspecting the coaching decision core.

Usage:
    okrforge-debug analyze "Launch the new mobile app" [--scope team] [--session ID]
    okrforge-debug questions "Great start. What outcome matters most? How will you measure it?"
    okrforge-debug catalogue
    okrforge-debug session --session ID
"""

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from okrforge.altitude import ObjectiveScope
from okrforge.antipatterns import load_catalogue
from okrforge.checkpoints import ConversationPhase
from okrforge.config import CoachConfig
from okrforge.context import UserContext
from okrforge.habits import HabitManager
from okrforge.output import (
    console,
    print_header,
    print_subheader,
    print_success,
    print_error,
    print_warning,
    print_info,
    print_muted,
    print_panel,
    print_list,
    print_key_value_table,
    print_progress_bar,
    create_table,
    print_table,
    severity_style,
    setup_rich_logging,
    icon,
)
from okrforge.questions import QuestionFlowManager, QuestionState, extract_questions
from okrforge.session_state import SessionContext, SessionContextStore
from okrforge.turn import TurnPipeline


def get_project_dir(args) -> Path:
    """Get project directory from args or current directory."""
    if hasattr(args, 'project') and args.project:
        return Path(args.project)
    return Path.cwd()


def _new_context(args) -> SessionContext:
    user_context = UserContext(industry=args.industry, function=args.function)
    scope = ObjectiveScope(args.scope) if args.scope else None
    return SessionContext.create(
        args.session or "debug",
        phase=ConversationPhase(args.phase),
        user_context=user_context,
        initial_scope=scope,
    )


def cmd_analyze(args, config: CoachConfig):
    """Analyse one user message."""
    store = SessionContextStore(get_project_dir(args), config.state_dir)
    context = store.load(args.session) if args.session else None
    if context is None:
        context = _new_context(args)
        if args.session:
            print_info(f"Starting new session context: {args.session}")

    pipeline = TurnPipeline(config)
    analysis = pipeline.analyze(args.message, context)
    detection = analysis.detection

    print_header("Message Analysis")

    if detection.detected:
        table = create_table(title="Anti-Patterns", columns=["Pattern", "Severity", "Confidence", "Intervention"])
        for pattern in detection.patterns:
            style = severity_style(pattern.severity.value)
            table.add_row(
                pattern.name,
                f"[{style}]{pattern.severity.value}[/]",
                f"{pattern.confidence:.2f}",
                pattern.intervention_type.value,
            )
        print_table(table)
    else:
        print_success("No anti-patterns detected")

    if analysis.reframing is not None:
        print_panel(
            analysis.reframing.suggestion,
            title=detection.reframing_strategy.name,
            subtitle=analysis.reframing.expected_outcome,
        )
        print_list(analysis.reframing.follow_up_questions)

    if analysis.drift is not None:
        print_subheader("Altitude")
        tracker = analysis.context.altitude_tracker
        print_key_value_table({
            "Detected scope": analysis.drift.new_scope.value,
            "Confidence": f"{analysis.drift.confidence:.2f}",
            "Drift": "yes" if analysis.drift.detected else "no",
            "Timing": analysis.intervention_timing.value if analysis.intervention_timing else "-",
            "Stability": f"{tracker.stability_score:.2f}",
        })
        if analysis.scarf_intervention is not None:
            print_panel(analysis.scarf_intervention.render(), title="SCARF Intervention")

    print_subheader("Checkpoints")
    for celebration in analysis.celebrations:
        console.print(celebration)
    tracker = analysis.context.checkpoint_tracker
    print_progress_bar(tracker.completed_checkpoints, tracker.total_checkpoints, title=tracker.current_phase.value)

    for habit in analysis.habits:
        print_info(f"Habit reinforced: {habit.type} ({habit.stage.value}, {habit.automaticity:.0%})")

    if args.session and args.save:
        if store.save(analysis.context):
            print_success(f"Saved session context {args.session}")


def cmd_questions(args, config: CoachConfig):
    """Show how generated text is split into one question plus a queue."""
    extraction = extract_questions(args.text)
    print_header("Question Extraction")
    if extraction.questions:
        print_list(extraction.questions, numbered=True)
    else:
        print_muted("No questions found")

    flow = QuestionFlowManager(announce_queued=config.announce_queued_questions)
    processed = flow.process_response(args.text, QuestionState())
    print_panel(processed.response_to_user, title="Shown to user")
    if processed.state.pending_questions:
        print_subheader("Queued")
        print_list(processed.state.pending_questions, numbered=True)


def cmd_catalogue(args, config: CoachConfig):
    """List the anti-pattern catalogue."""
    catalogue = load_catalogue(config.catalogue_path)
    if not catalogue.patterns:
        print_warning("Anti-pattern catalogue is empty")
        return

    table = create_table(
        title="Anti-Pattern Catalogue",
        columns=["ID", "Severity", "Intervention", "Strategy", "Regexes", "Keywords"],
    )
    for rule in catalogue.patterns:
        style = severity_style(rule.severity.value)
        table.add_row(
            rule.id,
            f"[{style}]{rule.severity.value}[/]",
            rule.intervention_type.value,
            rule.strategy.name,
            str(len(rule.regexes)),
            str(len(rule.keywords)),
        )
    print_table(table)


def cmd_session(args, config: CoachConfig):
    """Show a stored session context."""
    store = SessionContextStore(get_project_dir(args), config.state_dir)

    if not args.session:
        sessions = store.list_sessions()
        if not sessions:
            print_muted("No stored sessions")
            return
        print_header("Stored Sessions")
        print_list(sessions)
        return

    context = store.load(args.session)
    if context is None:
        print_error(f"No session context found for {args.session}")
        sys.exit(1)

    print_header(f"Session {context.session_id}")
    tracker = context.checkpoint_tracker
    print_key_value_table({
        "Phase": context.phase.value,
        "Streak": f"{tracker.current_streak} (longest {tracker.longest_streak})",
        "Backtracks": str(tracker.backtracking_count),
        "Learning capacity": str(context.neural_state.learning_capacity),
        "Updated": context.updated_at[:19].replace("T", " "),
    }, title="Summary")
    print_progress_bar(tracker.completed_checkpoints, tracker.total_checkpoints, title=tracker.current_phase.value)

    for checkpoint in tracker.checkpoints:
        marker = icon("check") if checkpoint.is_complete else icon("bullet")
        console.print(f"  {marker} {checkpoint.name}")

    if context.altitude_tracker is not None:
        altitude = context.altitude_tracker
        print_subheader("Altitude")
        print_key_value_table({
            "Initial": altitude.initial_scope.value,
            "Current": altitude.current_scope.value,
            "Drift events": str(len(altitude.drift_history)),
            "Stability": f"{altitude.stability_score:.2f}",
        })

    questions = context.question_state
    if questions.current_question or questions.pending_questions:
        print_subheader("Questions")
        if questions.current_question:
            print_info(f"Current: {questions.current_question}")
        print_list(questions.pending_questions, numbered=True)

    progress = HabitManager().get_progress(context.habit_tracker)
    if progress.total_patterns:
        print_subheader("Habits")
        print_key_value_table({
            "Behaviours seen": str(progress.total_patterns),
            "Habits": f"{progress.total_habits} ({progress.automatic_habits} automatic)",
            "Average automaticity": f"{progress.average_automaticity:.0%}",
        })


def main():
    load_dotenv()
    config = CoachConfig.load()
    setup_rich_logging(config.logging_level)

    parser = argparse.ArgumentParser(
        description="Debug CLI Tool for the OKR coaching decision core",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Analyse a message against a fresh discovery session
    okrforge-debug analyze "Launch the new mobile app" --scope team

    # Analyse and store the result in a named session
    okrforge-debug analyze "I manage a team of 8 engineers" --session demo --save

    # Split generated text into one question and a queue
    okrforge-debug questions "Nice. What outcome matters most? How will you measure it?"

    # List the anti-pattern catalogue
    okrforge-debug catalogue

    # Show a stored session
    okrforge-debug session --session demo
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    analyze_parser = subparsers.add_parser("analyze", help="Analyse a user message")
    analyze_parser.add_argument("message", help="User message text")
    analyze_parser.add_argument("--session", "-s", help="Session ID to load and update")
    analyze_parser.add_argument("--save", action="store_true", help="Store the updated session context")
    analyze_parser.add_argument("--scope", choices=[s.value for s in ObjectiveScope],
                                help="Initial altitude for a new session")
    analyze_parser.add_argument("--phase", default=ConversationPhase.DISCOVERY.value,
                                choices=[p.value for p in ConversationPhase if p != ConversationPhase.COMPLETED],
                                help="Phase for a new session")
    analyze_parser.add_argument("--industry", help="User industry")
    analyze_parser.add_argument("--function", help="User function or role")
    analyze_parser.add_argument("--project", "-p", help="Project directory")

    questions_parser = subparsers.add_parser("questions", help="Apply the one-question rule to text")
    questions_parser.add_argument("text", help="Generated assistant text")

    subparsers.add_parser("catalogue", help="List the anti-pattern catalogue")

    session_parser = subparsers.add_parser("session", help="Show a stored session context")
    session_parser.add_argument("--session", "-s", help="Session ID (default: list sessions)")
    session_parser.add_argument("--project", "-p", help="Project directory")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    commands = {
        "analyze": cmd_analyze,
        "questions": cmd_questions,
        "catalogue": cmd_catalogue,
        "session": cmd_session,
    }

    commands[args.command](args, config)


if __name__ == "__main__":
    main()
