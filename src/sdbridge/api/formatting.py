"""Markdown rendering of text-to-image outcomes for JSON-RPC replies."""

from __future__ import annotations

from typing import Any


def format_generation_markdown(result: dict[str, Any]) -> str:
    """Render a successful :meth:`SDBridgeService.text_to_image` result.

    Args:
        result: Success record with ``input``, ``optimized_prompt``,
            ``negative_prompt``, ``model_used``, ``parameters``, ``seeds``
            and ``image_data``

    Returns:
        Markdown document embedding the first image as a data URI
    """
    params = result.get("parameters", {})
    seeds = result.get("seeds") or []
    seed = seeds[0] if seeds and seeds[0] != -1 else "random"

    lines = [
        "## Stable Diffusion generation result",
        "",
        f"**Input**: {result.get('input', '')}",
        "",
        f"**Optimized prompt**: {result.get('optimized_prompt', '')}",
        "",
        f"**Negative prompt**: {result.get('negative_prompt', '')}",
        "",
        f"**Model**: {result.get('model_used', '')}",
        "",
        "**Parameters**:",
        f"- Steps: {params.get('steps')}",
        f"- CFG Scale: {params.get('cfg_scale')}",
        f"- Sampler: {params.get('sampler_name')}",
        f"- Size: {params.get('width')}x{params.get('height')}",
        f"- Seed: {seed}",
        "",
        f"![Generated image](data:image/png;base64,{result.get('image_data', '')})",
    ]
    return "\n".join(lines)
