"""MCP prompt registry.

Prompts are predefined conversation/workflow templates that the client can invoke explicitly.
"""

from __future__ import annotations

from typing import Any

from mcp.server.fastmcp import FastMCP


def register_prompts(mcp: FastMCP) -> None:
    """Register prompt templates on the MCP server."""

    @mcp.prompt()
    def explain_traffic(minutes_lookback: int = 5) -> list[dict[str, Any]]:
        """Build a prompt that summarizes recent traffic on the monitored site."""
        return [
            {
                "role": "system",
                "content": (
                    "You are an operations assistant watching a web server access log. "
                    "Summarize traffic from tool output only; do not invent numbers."
                ),
            },
            {
                "role": "user",
                "content": (
                    "Summarize recent traffic. Follow this workflow:\n"
                    "- Call traffic_snapshot for the current histogram and alert state.\n"
                    f"- Call section_counts and status_counts with minutes_lookback={minutes_lookback}.\n"
                    "- If no requests were recorded, say so and stop.\n\n"
                    "Return this structure:\n"
                    "1) Volume (requests per second, busiest bucket)\n"
                    "2) Top sections (up to 3, with counts)\n"
                    "3) Status breakdown (call out any 4xx/5xx share)\n"
                    "4) Alert state (firing, recovering, or clear)\n"
                ),
            },
        ]

    @mcp.prompt()
    def investigate_alert(limit: int = 50) -> list[dict[str, Any]]:
        """Build a prompt for investigating a high-traffic alert."""
        return [
            {
                "role": "system",
                "content": (
                    "You are a senior incident triage assistant for web services. "
                    "Provide concise, evidence-based findings. If the evidence is "
                    "insufficient, say so."
                ),
            },
            {
                "role": "user",
                "content": (
                    "A high-traffic alert may be active. Follow this workflow:\n"
                    "- Call traffic_snapshot and report the alert threshold, interval and "
                    "current average rate.\n"
                    "- Call average_rate using the alert interval as the window.\n"
                    f"- Call recent_requests with limit={limit} and look for dominant hosts, "
                    "sections or status codes.\n\n"
                    "Return this structure:\n"
                    "1) Is the alert justified (yes/no, with the numbers)\n"
                    "2) Evidence (up to 5 requests, quoted from tool output)\n"
                    "3) Likely source of the traffic ('Unknown' if unclear)\n"
                    "4) Next actions (2-4 bullets)\n"
                ),
            },
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": "Optional raw context from the monitored log:"},
                    {"type": "resource", "uri": "log://tail"},
                ],
            },
        ]
