"""OpenAI-compatible term expansion provider."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from GraphSearch.core.conditions import ExpansionMode, TermKind
from GraphSearch.llm.client import LLMApiClient, extract_json
from GraphSearch.utils.log import log

_STRATEGY_INSTRUCTIONS = {
    ExpansionMode.FUZZY: (
        "Generate fuzzy variations: morphological variations, common typos, "
        "alternative spellings and completions of partial words."
    ),
    ExpansionMode.SYNONYMS: "Generate synonyms and alternative terms with the same meaning.",
    ExpansionMode.RELATED_CONCEPTS: (
        "Generate closely related concepts: associated ideas and terms commonly found together."
    ),
    ExpansionMode.BROADER_TERMS: (
        "Generate broader, more general terms: parent categories and umbrella terms."
    ),
}


@dataclass(slots=True)
class OpenAICompatProvider:
    """Expansion provider using an OpenAI-compatible chat completions API.

    Works with any server following OpenAI's chat completion format
    (OpenAI, DeepSeek, SiliconFlow, local OpenAI-compatible servers).
    """

    name: str
    client: LLMApiClient
    model: str
    temperature: float = 0.0
    max_tokens: int = 300

    def expand_term(
        self,
        term: str,
        mode: ExpansionMode,
        *,
        kind: TermKind = TermKind.TEXT,
        max_variants: int = 5,
        exclude: Sequence[str] = (),
    ) -> list[str]:
        """Generate variants for one term.

        Args:
            term: Term text or page title.
            mode: Concrete expansion strategy (not ``ALL``).
            kind: ``PAGE_REF`` asks for variants that could be page titles.
            max_variants: Upper bound on returned variants.
            exclude: Variants already found, which the model must not repeat.

        Returns:
            Deduplicated variants, excluding the term itself.

        Raises:
            ValueError: If ``mode`` has no prompt.
            requests.HTTPError: If the API request fails.
        """
        instruction = _STRATEGY_INSTRUCTIONS.get(mode)
        if instruction is None:
            raise ValueError(f"Unsupported expansion mode for provider: {mode.value}")

        target = "that could be page titles" if kind is TermKind.PAGE_REF else "that could appear in note text"
        system_prompt = (
            "You expand search terms for a personal knowledge graph. "
            "Return plain words or short phrases, never regular expressions."
        )
        user_prompt = f"""{instruction}
Term: "{term}"
Return at most {max_variants} variations {target}.
Return ONLY a JSON object with this exact key:
{{"variants": ["...", "..."]}}
"""
        if exclude:
            user_prompt += f"\nDo NOT repeat these already found variations: {', '.join(exclude)}\n"

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        log.debug("Expanding term %r mode=%s kind=%s", term, mode.value, kind.value)

        response_text = self.client.chat_completion(
            messages=messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        data = extract_json(response_text)
        raw = data.get("variants")
        if not isinstance(raw, list):
            log.warning("Expansion response has no variants list for %r", term)
            return []
        return clean_variants(term, raw, max_variants=max_variants, exclude=exclude)


def clean_variants(term: str, raw: Sequence[object], *, max_variants: int, exclude: Sequence[str] = ()) -> list[str]:
    """Keep non-empty string variants that differ from the term (case-insensitively)."""
    seen = {term.casefold(), *(item.casefold() for item in exclude)}
    out: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        variant = item.strip()
        if not variant or variant.casefold() in seen:
            continue
        seen.add(variant.casefold())
        out.append(variant)
        if len(out) >= max_variants:
            break
    return out
