#!/usr/bin/env python3
"""
CodePlanner CLI
Turn a goal into a reviewed, step-by-step plan of file edits and run it.
"""

import argparse
import asyncio
import sys
from typing import Optional

from colorama import Fore, Style, init

from codeplanner.client import HTTPGenerationService, LLMGenerationService
from codeplanner.config import PlannerConfig
from codeplanner.errors import (
    ClipboardError,
    CodePlannerError,
    GoalEmptyError,
    InvalidTransitionError,
    PlanGenerationError,
    PlanValidationError,
    StepExecutionError,
)
from codeplanner.llm import LLM
from codeplanner.orchestrator import Orchestrator, RunStatus, Snapshot
from codeplanner.utils import copy_to_clipboard, setup_logging

init()  # Initialize colorama for Windows


class CLIColors:
    """Color utilities for CLI output"""

    @staticmethod
    def success(text: str) -> str:
        return f"{Fore.GREEN}{text}{Style.RESET_ALL}"

    @staticmethod
    def error(text: str) -> str:
        return f"{Fore.RED}{text}{Style.RESET_ALL}"

    @staticmethod
    def warning(text: str) -> str:
        return f"{Fore.YELLOW}{text}{Style.RESET_ALL}"

    @staticmethod
    def info(text: str) -> str:
        return f"{Fore.CYAN}{text}{Style.RESET_ALL}"

    @staticmethod
    def highlight(text: str) -> str:
        return f"{Fore.MAGENTA}{Style.BRIGHT}{text}{Style.RESET_ALL}"


class CodePlannerCLI:
    """Terminal front end over the orchestrator"""

    def __init__(self, config: PlannerConfig):
        self.config = config
        if config.service_url:
            service = HTTPGenerationService(config.service_url, timeout=config.timeout)
        else:
            service = LLMGenerationService(LLM(config))
        self.orchestrator = Orchestrator(service)
        self.orchestrator.subscribe(self._render)
        self._shown_stream = 0
        self._shown_log = 0

    def _render(self, snap: Snapshot) -> None:
        """Print streamed plan text and new log lines as they arrive"""
        if snap.status is RunStatus.PLANNING and len(snap.streaming_plan) > self._shown_stream:
            sys.stdout.write(Style.DIM + snap.streaming_plan[self._shown_stream:] + Style.RESET_ALL)
            sys.stdout.flush()
            self._shown_stream = len(snap.streaming_plan)
        if len(snap.log) < self._shown_log:
            self._shown_log = 0
        for entry in snap.log[self._shown_log:]:
            colour = CLIColors.error if entry.startswith("Error") else CLIColors.info
            print(colour(f"  {entry}"))
        self._shown_log = len(snap.log)

    def show_plan(self) -> None:
        snap = self.orchestrator.snapshot
        if not snap.plan:
            print(CLIColors.warning("📋 The plan is empty. Use 'add' to create a step."))
            return
        print(CLIColors.highlight("📋 Plan:"))
        for index, step in enumerate(snap.plan):
            marker = CLIColors.error(" ◀ fix me") if index == snap.validation_error_index else ""
            description = step.description or CLIColors.warning("<no description>")
            file = step.file or CLIColors.warning("<no file>")
            print(f"  {step.step}. {description}  [{file}]{marker}")

    def show_log(self) -> None:
        for entry in self.orchestrator.snapshot.log:
            print(f"  {entry}")

    def show_files(self) -> None:
        files = self.orchestrator.snapshot.files
        if not files:
            print(CLIColors.warning("No output files yet."))
            return
        for path, content in files.items():
            print(f"  📄 {path} ({len(content.splitlines())} lines)")

    def cat_file(self, path: str) -> bool:
        files = self.orchestrator.snapshot.files
        if path not in files:
            print(CLIColors.error(f"❌ No output for {path}"))
            return False
        print(CLIColors.highlight(f"── {path} ──"))
        print(files[path])
        return True

    def copy_file(self, path: str) -> bool:
        files = self.orchestrator.snapshot.files
        if path not in files:
            print(CLIColors.error(f"❌ No output for {path}"))
            return False
        try:
            copy_to_clipboard(files[path])
        except ClipboardError as e:
            print(CLIColors.error(f"❌ Failed to copy code: {e}"))
            return False
        print(CLIColors.success("✅ Code copied to clipboard!"))
        return True

    def generate(self, goal: str) -> bool:
        self._shown_stream = 0
        try:
            print(CLIColors.info(f"🎯 Planning: {goal}"))
            asyncio.run(self.orchestrator.generate(goal))
        except GoalEmptyError as e:
            print(CLIColors.error(f"❌ {e}"))
            return False
        except PlanGenerationError as e:
            print()
            print(CLIColors.error(f"❌ Error generating plan: {e}"))
            return False
        print()
        self.show_plan()
        return True

    def execute(self) -> bool:
        try:
            print(CLIColors.info("🚀 Executing plan..."))
            asyncio.run(self.orchestrator.execute())
        except PlanValidationError as e:
            print(CLIColors.error(f"❌ Cannot execute plan. {e}"))
            return False
        except StepExecutionError as e:
            print(CLIColors.error(f"❌ Execution failed: {e.message}"))
            print(CLIColors.info("💡 Fix the plan and type 'run' to try again."))
            return False
        print(CLIColors.success("✅ Plan executed successfully!"))
        self.show_files()
        return True

    def _step_index(self, arg: str) -> Optional[int]:
        try:
            number = int(arg)
        except ValueError:
            print(CLIColors.error(f"❌ Not a step number: {arg}"))
            return None
        plan = self.orchestrator.snapshot.plan or ()
        if not 1 <= number <= len(plan):
            print(CLIColors.error(f"❌ No step {number}"))
            return None
        return number - 1

    def _handle_review_command(self, command: str, args: str) -> bool:
        if command == "show":
            self.show_plan()
        elif command in ("desc", "file"):
            number, _, value = args.partition(" ")
            index = self._step_index(number)
            if index is not None:
                field = "description" if command == "desc" else "file"
                self.orchestrator.set_field(index, field, value.strip())
                self.show_plan()
        elif command in ("rm", "del", "delete"):
            index = self._step_index(args)
            if index is not None:
                self.orchestrator.delete_step(index)
                self.show_plan()
        elif command == "add":
            self.orchestrator.add_step(args or None)
            self.show_plan()
        elif command in ("run", "execute", "approve"):
            self.execute()
        else:
            return False
        return True

    def interactive_mode(self):
        """Run the goal → plan → review → execute loop"""
        print(CLIColors.highlight("🤖 CodePlanner - interactive mode"))
        print(CLIColors.info("Type 'help' for available commands, 'exit' to quit."))
        print()

        while True:
            try:
                status = self.orchestrator.status
                prompt = "goal> " if status is RunStatus.IDLE else f"{status.value}> "
                user_input = input(CLIColors.highlight(prompt)).strip()
                if not user_input:
                    continue

                command, _, args = user_input.partition(" ")
                command = command.lower()
                args = args.strip()

                if command in ("exit", "quit", "q"):
                    print(CLIColors.success("👋 Goodbye!"))
                    break
                elif command == "help":
                    self._show_interactive_help()
                elif command in ("reset", "restart"):
                    self.orchestrator.reset()
                    print(CLIColors.warning("↺ Started over."))
                elif command == "log":
                    self.show_log()
                elif command == "files":
                    self.show_files()
                elif command == "cat":
                    self.cat_file(args)
                elif command == "copy":
                    self.copy_file(args)
                elif status is RunStatus.IDLE:
                    self.generate(user_input)
                elif not self._handle_review_command(command, args):
                    print(CLIColors.error(f"❌ Unknown command: {command}"))
                    print(CLIColors.info("💡 Type 'help' for available commands."))

                print()  # Add spacing between commands

            except InvalidTransitionError as e:
                print(CLIColors.error(f"❌ Not now: {e}"))
            except KeyboardInterrupt:
                print("\n" + CLIColors.success("👋 Goodbye!"))
                break
            except EOFError:
                print("\n" + CLIColors.success("👋 Goodbye!"))
                break

    def _show_interactive_help(self):
        help_text = """
🔧 Available Commands:

  <goal text>           - (when idle) describe what you want; a plan is generated
  show                  - Show the current plan
  desc <n> <text>       - Replace the description of step n
  file <n> <path>       - Replace the file path of step n
  rm <n>                - Delete step n (remaining steps are renumbered)
  add [path]            - Append an empty step (defaults to the last step's file)
  run                   - Approve and execute the plan
  log                   - Show the execution log
  files                 - List generated files
  cat <path>            - Print a generated file
  copy <path>           - Copy a generated file to the clipboard
  reset                 - Discard everything and start over
  help                  - Show this help message
  exit                  - Exit interactive mode

📝 Example session:
  goal> add a hello world function
  review> file 1 src/hello.ts
  review> run
  done> cat src/hello.ts
"""
        print(CLIColors.info(help_text))


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser"""
    parser = argparse.ArgumentParser(
        description="CodePlanner CLI - plan, review and execute AI code edits",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s plan "add a hello world function"
  %(prog)s run "create a counter component" --yes
  %(prog)s --service-url http://127.0.0.1:3111 interactive
""",
    )

    parser.add_argument(
        "--service-url", "-s",
        type=str,
        help="Base URL of a running relay (default: call the model directly)",
    )
    parser.add_argument("--log-level", type=str, help="Logging level (default: CODEPLANNER_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    plan_parser = subparsers.add_parser("plan", help="Generate and print a plan for a goal")
    plan_parser.add_argument("goal", help="What you want to achieve")

    run_parser = subparsers.add_parser("run", help="Generate a plan and execute it")
    run_parser.add_argument("goal", help="What you want to achieve")
    run_parser.add_argument("--yes", "-y", action="store_true", help="Execute without asking for approval")

    subparsers.add_parser("interactive", help="Start interactive mode")

    return parser


def main():
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args()

    try:
        config = PlannerConfig.from_env(service_url=args.service_url, log_level=args.log_level)
        setup_logging(config.log_level)
        cli = CodePlannerCLI(config)
    except (CodePlannerError, ValueError) as e:
        print(CLIColors.error(f"❌ Failed to initialize CLI: {str(e)}"))
        sys.exit(1)

    success = True

    if args.command == "plan":
        success = cli.generate(args.goal)

    elif args.command == "run":
        success = cli.generate(args.goal)
        if success and not args.yes:
            response = input(CLIColors.info("Execute this plan? (y/N): ")).strip().lower()
            if response not in ["y", "yes"]:
                print(CLIColors.warning("⏭️  Execution cancelled."))
                sys.exit(0)
        if success:
            success = cli.execute()
            if success:
                for path in cli.orchestrator.snapshot.files:
                    cli.cat_file(path)

    else:
        cli.interactive_mode()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
