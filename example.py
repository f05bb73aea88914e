#!/usr/bin/env python3
"""
Example usage of PromptFitter package.
"""

import asyncio

from prompt_fitter import (
    CallableProvider,
    FitEngine,
    InMemoryStore,
    PromptBuilder,
    RenderHooks,
    TokenizerService,
    PlainTextCodec,
    flatten,
)


def fake_completion(rendered: str) -> str:
    """Stand-in for a model call: keep the first sentence of the first user line."""
    for line in rendered.split("\n\n"):
        if line.startswith("user: "):
            return line[len("user: "):].split(".")[0] + "."
    return ""


async def main():
    """Demonstrate PromptFitter functionality."""

    print("=== PromptFitter Example ===\n")

    tokenizer = TokenizerService(backend="simple")
    codec = PlainTextCodec(tokenizer)
    provider = CallableProvider(codec, fake_completion)
    store = InMemoryStore()

    history = [
        ("user", "I am planning a trip to Lisbon in May. I like museums and long walks."),
        ("assistant", "Lisbon in May is pleasant. The Gulbenkian museum is worth a visit."),
        ("user", "I also need a vegetarian restaurant near Alfama. Budget is moderate."),
        ("assistant", "There are several good options around Largo do Chafariz de Dentro."),
    ]

    def add_history(builder):
        for role, text in history:
            builder = builder.user(text) if role == "user" else builder.assistant(text)
        return builder

    prompt = (
        PromptBuilder()
        .system("You are a concise travel assistant.")
        .pin(id="system", version="v1")
        .summary(add_history, id="trip-history", store=store, priority=1)
        .omit(lambda b: b.user("Tip: trams 28 and 12 pass most viewpoints."), priority=2)
        .user("Which day trip would you suggest?")
    )

    print("1. Tree Before Fitting")
    print("-" * 30)
    tree = prompt.build()
    layout = flatten(tree)
    print(f"Messages: {len(layout)}")
    print(f"Tokens: {codec.count_layout_tokens(layout)}")
    print()

    print("2. Fitting Under Budget")
    print("-" * 30)
    hooks = RenderHooks(
        on_fit_iteration=lambda e: print(f"  iteration {e.iteration}: {e.total_tokens} tokens, "
                                         f"reducing scope {e.target.id or '(anonymous)'}"),
    )
    result = await prompt.render(provider=provider, budget=40, hooks=hooks)
    print(f"Final tokens: {result.total_tokens}")
    print(f"Cache id: {result.cache_id}")
    print()
    print(result.messages)
    print()

    print("3. Fit Statistics")
    print("-" * 30)
    engine = FitEngine(codec)
    fitted = await engine.fit(tree, 40, provider=provider)
    for key, value in engine.get_fit_stats(fitted).items():
        print(f"{key}: {value}")

    stored = await store.get("trip-history")
    print(f"\nStored summary: {stored.data['content']}")


if __name__ == "__main__":
    asyncio.run(main())
