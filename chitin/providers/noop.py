"""Local stub backend that never leaves the machine."""

from chitin.providers.base import CommandGenerator, GenerationContext


class NoopProvider(CommandGenerator):
    """Echoes the request back as a command. Handy for testing the shell widget."""

    name = "noop"

    def generate(self, context: GenerationContext) -> str:
        prompt = context.prompt.strip()
        if not prompt:
            return ":"
        return f'echo "Chitin: {prompt}"'
