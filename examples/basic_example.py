"""
Basic Reforge Example
=====================

This example demonstrates the core features of reforge:
- Extracting JSON from messy model output
- Few-shot seeding of a chat session
- Validator-driven retries with a Pydantic model
- Per-call usage and structured attempt logs

To run this example:
    uv run python examples/basic_example.py

Note: Requires an API key for the configured model (e.g. OPENAI_API_KEY)
in the environment or a .env file.
"""

import asyncio

from pydantic import BaseModel, Field

from reforge import (
    ChatSession,
    StructuredLogger,
    TransformationError,
    Transformer,
    extract_with_details,
    load_env_files,
    model_validator,
)

# ============================================================================
# Target Schema
# ============================================================================


class Profile(BaseModel):
    """The shape every transformed record must have."""

    full_name: str
    profession: str
    seniority: str = Field(pattern="^(junior|mid|senior)$")


# ============================================================================
# Examples
# ============================================================================


def demo_extraction() -> None:
    """Show how raw model output is parsed without any model calls."""
    print("\n=== Extraction ===")
    samples = [
        'Sure, here is your JSON:\n```json\n{"name": "Alice"}\n```',
        'Result: {"ok": true} // trailing comment',
        '{"people": [{"name": "Bob"}, {"name": "Car',
    ]
    for sample in samples:
        result = extract_with_details(sample)
        print(f"{result.strategy:>10}  recovered={result.recovered}  {result.value}")


async def demo_transform() -> None:
    """Transform a record, letting the model repair its own mistakes."""
    print("\n=== Transformation ===")
    session = ChatSession(model="gpt-4o-mini")
    await session.seed(
        [
            {
                "PROMPT": {"first": "Alice", "last": "Ng", "title": "Staff Data Scientist"},
                "ANSWER": {"full_name": "Alice Ng", "profession": "data scientist", "seniority": "senior"},
                "EXPLANATION": "Staff titles map to senior",
            },
            {
                "PROMPT": {"first": "Bob", "last": "Ruiz", "title": "Associate PM"},
                "ANSWER": {"full_name": "Bob Ruiz", "profession": "product manager", "seniority": "junior"},
            },
        ]
    )

    transformer = Transformer(
        session,
        max_retries=2,
        retry_delay=0.5,
        structured_logger=StructuredLogger(stdout=True, include_values=False),
    )

    try:
        result = await transformer.transform(
            {"first": "Eve", "last": "Okafor", "title": "Engineer II"},
            validator=model_validator(Profile),
        )
        print(f"Result: {result}")
    except TransformationError as e:
        print(f"Gave up after {e.attempts} attempts: {e.last_error}")

    usage = transformer.get_usage()
    if usage:
        print(f"Attempts: {usage.attempts}, tokens: {usage.total_tokens} ({usage.model_version})")


async def main() -> None:
    load_env_files()
    demo_extraction()
    await demo_transform()


if __name__ == "__main__":
    asyncio.run(main())
