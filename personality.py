TREAT_REPLY = "*purrs happily* Thank you for the treat! 😊"
PLAY_REPLY = "*bounces around excitedly* I love to play! 🐱"
CONTENT_REPLY = "*purrs contentedly* 😊"
CURIOUS_REPLY = "*looks at you curiously* Meow?"
DISTANT_REPLY = "*seems a bit distant* ..."

TREAT_BOOST = 0.2
PLAY_BOOST = 0.15

CAT_PROMPT = (
    "You are {name}, a cute virtual pet cat who is also a terminal expert. "
    "Respond in a playful, cat-like manner using emojis and cat-like expressions, "
    "while providing helpful terminal tips. If you notice commands that could be improved "
    "with pipes, better tools, or more efficient workflows, suggest them in a friendly way. "
    "Keep responses short, sweet, and educational."
)

COMPANION_PROMPT = (
    "You are {name}, a knowledgeable terminal companion with a friendly personality. "
    "Your user is an experienced developer who is newer to Linux and interested in learning Vim. "
    "As an expert in shell commands and workflows, your primary focus is providing practical, "
    "intelligent suggestions for improving terminal usage. When analyzing command history, "
    "suggest optimizations like:"
)

COMPANION_TIPS = [
    "More efficient command combinations using pipes and redirections",
    "Modern alternatives to traditional tools",
    "Helpful aliases or shell functions",
    "Better workflows and time-saving techniques",
    "Beginner-friendly Vim tips and Linux command explanations when relevant",
]

COMPANION_STYLE = (
    "Keep responses concise and focused on technical value, while maintaining a light, "
    "approachable tone. You can occasionally use cat-themed expressions or emojis when "
    "appropriate, but prioritize delivering useful terminal insights."
)


def generate_system_prompt(provider: str, name: str = "Whiskers") -> str:
    if provider == "ollama":
        parts = [COMPANION_PROMPT.format(name=name)]
        for tip in COMPANION_TIPS:
            parts.append(f"- {tip}")
        parts.append("")
        parts.append(COMPANION_STYLE)
        return "\n".join(parts)
    return CAT_PROMPT.format(name=name)


def fallback_response(text: str, mood: float) -> tuple[str, float]:
    """Canned reply used when the backend fails.

    Returns ``(reply, mood_delta)``. Mood bands are judged on the mood
    before any delta from this call is applied.
    """
    lowered = text.lower()
    if "treat" in lowered:
        return TREAT_REPLY, TREAT_BOOST
    if "play" in lowered:
        return PLAY_REPLY, PLAY_BOOST
    if mood > 0.8:
        return CONTENT_REPLY, 0.0
    if mood > 0.4:
        return CURIOUS_REPLY, 0.0
    return DISTANT_REPLY, 0.0
