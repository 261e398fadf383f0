"""
Pytest configuration and fixtures for Content Trust tests.
"""

import json
import sys
from pathlib import Path

import pytest

# Make the repo root importable without installing
sys.path.insert(0, str(Path(__file__).parent.parent))

from content_trust.exceptions import CompletionError
from content_trust.extraction_config import resolve_extraction_config


# =============================================================================
# Fake completion gateway
# =============================================================================


class FakeGateway:
    """
    Stand-in for CompletionGateway that replays scripted responses.

    ``responses`` is either a list consumed in order (dicts/lists are
    JSON-encoded, exceptions are raised) or a callable
    ``(call_point, system_prompt, user_prompt) -> str``. Once a list runs
    out every further call returns "" like an exhausted gateway.
    """

    def __init__(self, responses=None):
        self.responses = responses if responses is not None else []
        self.calls = []

    def invoke(self, system_prompt, user_prompt, call_point, model_params=None,
               metadata=None, raise_on_exhaustion=False):
        self.calls.append({
            "system_prompt": system_prompt,
            "user_prompt": user_prompt,
            "call_point": call_point,
            "model_params": model_params,
            "metadata": metadata,
        })

        if callable(self.responses):
            response = self.responses(call_point, system_prompt, user_prompt)
        elif self.responses:
            response = self.responses.pop(0)
        else:
            response = ""

        if isinstance(response, Exception):
            raise response
        if isinstance(response, (dict, list)):
            response = json.dumps(response)
        if not response and raise_on_exhaustion:
            raise CompletionError("exhausted", call_point=call_point, attempts=1)
        return response

    def calls_for(self, prefix):
        return [c for c in self.calls if c["call_point"].startswith(prefix)]


@pytest.fixture
def fake_gateway():
    """Factory for FakeGateway instances."""
    return FakeGateway


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays = []

    def sleep(seconds):
        delays.append(seconds)

    sleep.delays = delays
    return sleep


# =============================================================================
# Config fixtures
# =============================================================================


@pytest.fixture
def base_config():
    """Fully resolved default (TEXTBOOK) extraction config."""
    return resolve_extraction_config(None)


@pytest.fixture
def config_for():
    """Resolve the config for a document type."""
    return resolve_extraction_config


# =============================================================================
# Sample data fixtures
# =============================================================================


@pytest.fixture
def sample_textbook_text():
    """Plain textbook prose, several paragraphs."""
    paragraphs = [
        "Photosynthesis is the process by which green plants convert light energy "
        "into chemical energy stored in glucose.",
        "Chlorophyll is the pigment that absorbs light, mostly in the red and blue "
        "parts of the spectrum.",
        "The light-dependent reactions take place in the thylakoid membranes and "
        "produce ATP and NADPH.",
        "The Calvin cycle uses ATP and NADPH to fix carbon dioxide into sugars in "
        "the stroma of the chloroplast.",
    ]
    return "\n\n".join(paragraphs * 3)


@pytest.fixture
def sample_curriculum_text():
    """Curriculum specification with three learning outcomes."""
    filler = "Learners should be able to apply this in a realistic workplace setting. " * 4
    return (
        "Unit 201: Principles of customer service\n\n"
        "LO1 Understand the customer journey\n"
        "1.1 Describe the stages of the customer journey\n"
        "1.2 Explain why first impressions matter\n"
        f"{filler}\n\n"
        "LO2 Handle complaints\n"
        "2.1 Identify common causes of complaints\n"
        "2.2 Explain the complaints procedure\n"
        f"{filler}\n\n"
        "LO3 Evaluate service quality\n"
        "3.1 Define service quality\n"
        "3.2 Evaluate methods of collecting feedback\n"
        f"{filler}\n"
    )


@pytest.fixture
def composite_text():
    """Workbook with teaching text, an exercise and an answer key."""
    return (
        "Chapter 1: Fractions\n"
        + "A fraction represents a part of a whole. The numerator is above the line. " * 8
        + "\n\nExercise 1\n"
        + "1. What is 1/2 + 1/4? Write your answer as a fraction in lowest terms. " * 4
        + "\n\nAnswer Key\n"
        + "1. 3/4 because the common denominator is four. " * 4
    )


# =============================================================================
# Pytest markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (require DB or API key)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with -m 'not slow')"
    )
