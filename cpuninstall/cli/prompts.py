"""Operator prompts. Anything but a single y means no."""

import click

YES_ANSWERS = {"y"}


class OperatorPrompter:
    """Interactive yes/no and free-text prompts on the controlling terminal."""

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question; empty, unknown or aborted input counts as no."""
        try:
            answer = click.prompt(f"{question} (y/N)", default="", show_default=False)
        except click.Abort:
            click.echo()
            return False
        return answer.strip().lower() in YES_ANSWERS

    def ask_text(self, question: str) -> str:
        """Ask for free text; aborted input counts as empty."""
        try:
            return click.prompt(question, default="", show_default=False).strip()
        except click.Abort:
            click.echo()
            return ""

    def echo(self, message: str) -> None:
        click.echo(message)
