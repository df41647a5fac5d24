"""Vision package: pure image ops and matching strategies.

Submodules:
- models: Rect, MatchOptions, MatchResult, PreprocessKey
- preprocess: stateless image preprocessing utilities
- template_cache / template: templates and their preprocessing cache
- matcher: scale-space best match and multi-match with suppression
- stabilizer: single-shot locality and wait-for-appearance

Submodules are imported directly (``from livematch.vision.matcher import
find_best``); config.vision depends on models, so nothing is imported here.
"""
