"""
Prompt construction for AI-backed anomaly detection.

The prompt strictly constrains output to JSON matching AIAnomalyResponse.
Indices in the prompt are positions within the values sent, starting at 0.
"""

from __future__ import annotations

import json
from typing import Optional, Sequence


def build_anomaly_prompt(values: Sequence[float], context: Optional[str] = None) -> str:
    """
    Build a strict JSON-only prompt asking the model to score each value.
    """

    data = ", ".join(f"{i}: {format(float(v), '.10g')}" for i, v in enumerate(values))

    instructions = {
        "task": "Analyze this time series for anomalies and score each anomalous point.",
        "consider": [
            "Statistical outliers",
            "Trend breaks",
            "Seasonal deviations",
            "Context-specific patterns",
        ],
        "constraints": [
            "Return a single JSON object only.",
            "Do NOT include any text outside JSON.",
            f"index must be an integer position between 0 and {max(len(values) - 1, 0)}.",
            "score must be a number between 0 and 1.",
            "Omit points that are not anomalous.",
        ],
        "schema": {
            "anomalies": [
                {"index": "int", "score": "float in [0,1]", "explanation": "short string"}
            ]
        },
    }

    prompt = (
        "You are a data scientist. Use ONLY the data provided.\n"
        f"INSTRUCTIONS: {json.dumps(instructions, sort_keys=True)}\n"
        f"DATA (index: value): {data}\n"
    )
    if context:
        prompt += f"CONTEXT: {context}\n"
    prompt += (
        'EXAMPLE: {"anomalies": [{"index": 45, "score": 0.8, "explanation": "sudden spike"}]}\n'
        "RETURN_JSON_ONLY:"
    )
    return prompt
