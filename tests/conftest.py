import asyncio
import json
import os
import sys
from typing import Any, Dict, List, Optional

import pytest

# 프로젝트 루트를 Python path에 추가
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from lingua_eval.models.evaluation import Evaluation
from lingua_eval.models.submission import QuizAnswer, QuizQuestion, Submission, SubmissionContent
from lingua_eval.services.ai_gateway.gateway import AIGateway
from lingua_eval.storage.memory import InMemoryStore
from lingua_eval.utils.prompt_loader import PromptLoader

FAKE_USAGE = {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}


class FakeLLM:
    """Scripted stand-in for the Azure client.

    Replies are keyed by gateway operation name (``score``, ``detect_errors``,
    ...). A reply may be a string, a dict (sent as JSON), an exception
    instance (raised) or a callable taking the messages. Operations without a
    reply raise ``ConnectionError``, which exercises the fallback paths.
    """

    deployment = "fake-deployment"

    def __init__(self, replies: Optional[Dict[str, Any]] = None, delay: float = 0.0):
        self.replies = dict(replies or {})
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    async def run_azure_openai(self, *, messages, json_mode=True, name=None, prompt_meta=None):
        self.calls.append({"name": name, "messages": messages, "json_mode": json_mode, "prompt_meta": prompt_meta})
        if self.delay:
            await asyncio.sleep(self.delay)
        if name not in self.replies:
            raise ConnectionError(f"no scripted reply for {name}")
        reply = self.replies[name]
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(messages)
        if isinstance(reply, (dict, list)):
            reply = json.dumps(reply)
        return {"content": reply, "usage": dict(FAKE_USAGE)}

    def prompt_for(self, name: str) -> str:
        for call in self.calls:
            if call["name"] == name:
                return call["messages"][-1]["content"]
        raise AssertionError(f"{name} was never called")


@pytest.fixture(scope="session")
def loader() -> PromptLoader:
    return PromptLoader()


@pytest.fixture
def make_gateway(loader):
    def _make(replies: Optional[Dict[str, Any]] = None, *, offline: bool = False, timeout: float = 5.0, delay: float = 0.0):
        llm = None if offline else FakeLLM(replies, delay=delay)
        return AIGateway(llm, loader=loader, timeout=timeout)
    return _make


@pytest.fixture
def offline_gateway(make_gateway) -> AIGateway:
    return make_gateway(offline=True)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def writing_submission():
    def _make(text: str = "I ate a apple yesterday. It was very sweet.", **kwargs) -> Submission:
        fields = dict(submission_id="sub-w1", student_id="stu-1", content_type="writing", proficiency_level="B1")
        fields.update(kwargs)
        return Submission(content=SubmissionContent(text=text), **fields)
    return _make


@pytest.fixture
def speaking_submission():
    def _make(transcript: Optional[str] = None, duration: Optional[float] = 120.0, **kwargs) -> Submission:
        fields = dict(submission_id="sub-s1", student_id="stu-1", content_type="speaking", proficiency_level="A2")
        fields.update(kwargs)
        return Submission(content=SubmissionContent(transcript=transcript, duration=duration), **fields)
    return _make


@pytest.fixture
def quiz_submission():
    def _make(answers=("paris", "TRUE", "photosynthesis"), **kwargs) -> Submission:
        fields = dict(submission_id="sub-q1", student_id="stu-1", content_type="quiz")
        fields.update(kwargs)
        questions = [
            QuizQuestion(question_text="Capital of France?", question_type="multiple-choice",
                         correct_answer="Paris", options=["Paris", "Rome", "Madrid", "Berlin"]),
            QuizQuestion(question_text="Water boils at 100C at sea level.", question_type="true-false",
                         correct_answer="True"),
            QuizQuestion(question_text="How do plants make food?", question_type="short-answer",
                         correct_answer="photosynthesis"),
        ]
        return Submission(
            questions=questions,
            content=SubmissionContent(answers=[QuizAnswer(answer=a) for a in answers]),
            **fields,
        )
    return _make


@pytest.fixture
def evaluation_for():
    def _make(submission: Submission, **scores) -> Evaluation:
        return Evaluation(
            submission_id=submission.submission_id,
            student_id=submission.student_id,
            content_type=submission.content_type,
            student_level=submission.proficiency_level,
            overall_score=scores.pop("overall_score", 75),
            **scores,
        )
    return _make


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without I/O")
    config.addinivalue_line("markers", "integration: multi-component pipeline tests")


def pytest_collection_modifyitems(config, items):
    for item in items:
        path = str(item.fspath)
        if f"{os.sep}unit_test{os.sep}" in path:
            item.add_marker(pytest.mark.unit)
        elif f"{os.sep}integration{os.sep}" in path:
            item.add_marker(pytest.mark.integration)
