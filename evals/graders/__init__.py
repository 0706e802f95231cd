"""
Eval graders -- deterministic checks over engine outputs.

- CodeGrader: named check functions run against any output
- configuration_result_grader: the checks every ConfigurationResult must pass
"""

from .code_grader import CodeGrader, CodeGraderResult, configuration_result_grader
