from __future__ import annotations

CONTROLLED_VOCABULARY = (
    ("Full Work", "productive cargo work, laytime commenced, loading/discharging periods"),
    ("Rain", "weather delays of any kind (rain, storm, swell, wind)"),
    ("Machine Breakdown", "equipment breakdown, e.g. conveyor or crane failure"),
    ("Weekend", "weekend and public holiday periods"),
    ("Survey", "draft survey, hold inspection and other surveys"),
    ("Waiting", "waiting for berth, cargo, documents or formalities"),
)

PROMPT_TEMPLATE = """You are an expert maritime logistics analyst. Extract every operational event from the
Statement of Facts documents below and provide an analysis of the port call.

The input contains one or more documents, each introduced by a line of the form
"=== DOCUMENT <n>: <name> ===". Each document holds the raw OCR text followed by a
structured rendering of its tables ("Row i: cell | cell | ...") or paragraphs.
Prefer the structured table rows when they are present.

Return ONLY a single JSON object, without explanations or markdown, of this shape:

{{
  "events": [
    {{
      "event_description": "string",
      "event_date": "YYYY-MM-DD",
      "event_start_time": "HH:MM",
      "event_end_time": "HH:MM",
      "duration": "HH:MM",
      "efficiency_rate": "0%" | "50%" | "100%",
      "source_document": <n>
    }}
  ],
  "analysis": {{
    "vessel_info": {{"vessel_name": "", "charter_party_date": "", "loading_port": "", "cargo": "", "owner": "", "charterer": ""}},
    "laytime_details": {{"cargo_quantity": "", "loading_rate": "", "demurrage_rate": "", "despatch_rate": ""}},
    "time_breakdown": {{"total_time": "HH:MM", "productive_time": "HH:MM", "weather_delays": "HH:MM", "weekend_time": "HH:MM", "breakdown_time": "HH:MM", "other_delays": "HH:MM"}},
    "efficiency_analysis": {{"overall_efficiency": "", "main_delay_factors": [], "cost_impact": ""}},
    "remarks": "summary of time spent, efficiency, main delay factors and recommendations"
  }}
}}

Rules:
- Standardize event_description using this vocabulary where it applies, otherwise keep the
  wording from the document (e.g. "Berthed", "Arrival", "Loading commenced"):
{vocabulary}
- Dates use YYYY-MM-DD. Convert day-first dates such as "12/01/17" to "2017-01-12".
- Times use 24-hour HH:MM. A range such as "12:50 - 16:00" gives start 12:50 and end 16:00.
  A full day "00:00 - 24:00" gives start 00:00 and end 24:00; 24:00 is only valid as an end time.
- A row without its own date uses the date of the most recent row that has one.
- efficiency_rate is the rate column of the laytime table (0%, 50% or 100%) when present.
- source_document is the <n> of the DOCUMENT header the event was read from.
- Skip header rows and rows that do not describe a time period or event.
- Leave a field empty ("") when the document does not state it; never invent values.

Documents:
---
{corpus}
---
"""


def build_prompt(corpus_text: str) -> str:
    vocabulary = "\n".join(f'  - "{label}": {meaning}' for label, meaning in CONTROLLED_VOCABULARY)
    return PROMPT_TEMPLATE.format(vocabulary=vocabulary, corpus=corpus_text)
