"""Prompt templates for theme extraction."""

THEME_EXTRACTION_SYSTEM_MESSAGE = """\
You are an expert at identifying the topics discussed in a video.
Analyse the SRT subtitles you are given and identify the main themes together
with the time range in which each one is discussed. Pay particular attention
to phrases that introduce a topic ("about ...", "what is ...", "how to ...")
and to the points where the conversation changes subject.
Reply with the requested JSON only, without any explanation.

If the subtitles are only part of a longer video, extract themes for that
part alone. Write each theme in the language of the subtitles.
"""

THEME_EXTRACTION_PROMPT = """\
Analyse the following SRT subtitles and list the main themes of the video with
their time ranges. If one stretch covers several topics, split it into
several entries.

Output format:

[
  {{"start": "00:01:15,500", "end": "00:03:45,800", "theme": "AIの歴史について"}},
  {{"start": "00:03:46,000", "end": "00:07:30,200", "theme": "機械学習の応用について"}}
]

Output the JSON array only.

Subtitles:
{subtitles}
"""


def build_theme_prompt(subtitles: str) -> str:
    return THEME_EXTRACTION_PROMPT.format(subtitles=subtitles)
