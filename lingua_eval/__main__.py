import argparse
import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional

from pydantic import ValidationError

from lingua_eval.client.bootstrap import build_llm
from lingua_eval.core.config import settings
from lingua_eval.core.exceptions import ConfigurationError, EvaluationException, UpstreamAIError
from lingua_eval.models.submission import CONTENT_TYPES, LEVELS, Submission
from lingua_eval.services.ai_gateway.gateway import AIGateway
from lingua_eval.services.evaluation.feedback import FeedbackSynthesizer
from lingua_eval.services.evaluation.mistakes import MistakeDetector
from lingua_eval.services.evaluation.scoring import ScoringEngine
from lingua_eval.services.orchestrator import EvaluationOrchestrator
from lingua_eval.storage.memory import InMemoryStore
from lingua_eval.utils.price_tracker import get_price_tracker

logger = logging.getLogger("lingua_eval")


def _print(payload: Dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2, default=str))


def _gateway(offline: bool) -> AIGateway:
    return AIGateway(None if offline else build_llm())


def _read_submission(path: Optional[str]) -> Dict[str, Any]:
    if path:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    return json.loads(sys.stdin.read())


async def _evaluate(submission: Submission, offline: bool) -> int:
    gateway = _gateway(offline)
    store = InMemoryStore()
    await store.add_submission(submission)
    orchestrator = EvaluationOrchestrator(
        store,
        ScoringEngine(gateway),
        MistakeDetector(gateway, store),
        FeedbackSynthesizer(gateway),
    )

    evaluation = await orchestrator.evaluate(submission.submission_id)
    mistakes = await store.list_mistakes([evaluation.evaluation_id])
    feedback = await store.get_feedback_for_evaluation(evaluation.evaluation_id)

    output = {
        "evaluation": evaluation.model_dump(mode="json"),
        "mistakes": [m.model_dump(mode="json") for m in mistakes],
        "feedback": feedback.model_dump(mode="json") if feedback else None,
    }
    if gateway.online:
        output["usage"] = get_price_tracker().get_session_summary()
    _print(output)
    return 0


async def _generate_questions(activity_type: str, level: str, topic: str, count: int, offline: bool) -> int:
    result = await _gateway(offline).generate_questions(activity_type, level, topic, count)
    if isinstance(result, list):
        _print({"questions": [q.model_dump(mode="json") for q in result]})
    else:
        _print({"prompt": result.model_dump(mode="json")})
    return 0


async def _generate_prompt(activity_type: str, level: str, topic: str, offline: bool) -> int:
    result = await _gateway(offline).generate_prompt(activity_type, level, topic)
    _print({"prompt": result.model_dump(mode="json")})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lingua_eval", description="CEFR-aware submission evaluation")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default from LOG_LEVEL)")
    sub = parser.add_subparsers(dest="command", required=True)

    ev = sub.add_parser("evaluate", help="Run the full pipeline on one submission JSON")
    ev.add_argument("--file", help="Submission JSON file (reads stdin when omitted)")
    ev.add_argument("--level", choices=LEVELS, help="Override the submission's proficiency level")
    ev.add_argument("--offline", action="store_true", help="Skip the model and use deterministic heuristics")

    gq = sub.add_parser("generate-questions", help="Draft quiz questions or a guided activity")
    gq.add_argument("--type", dest="activity_type", required=True, choices=CONTENT_TYPES)
    gq.add_argument("--level", default=settings.DEFAULT_LEVEL, choices=LEVELS)
    gq.add_argument("--topic", required=True)
    gq.add_argument("--count", type=int, default=5)
    gq.add_argument("--offline", action="store_true")

    gp = sub.add_parser("generate-prompt", help="Draft a speaking or writing prompt")
    gp.add_argument("--type", dest="activity_type", required=True, choices=("speaking", "writing"))
    gp.add_argument("--level", default=settings.DEFAULT_LEVEL, choices=LEVELS)
    gp.add_argument("--topic", required=True)
    gp.add_argument("--offline", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )

    try:
        if args.command == "evaluate":
            try:
                data = _read_submission(args.file)
                if args.level:
                    data["proficiency_level"] = args.level
                submission = Submission.model_validate(data)
            except (OSError, json.JSONDecodeError, ValidationError, TypeError) as e:
                print(f"Invalid submission: {e}", file=sys.stderr)
                return 2
            # the pipeline always starts from a fresh pending record
            submission = submission.model_copy(update={"status": "pending"})
            return asyncio.run(_evaluate(submission, args.offline))

        if args.command == "generate-questions":
            return asyncio.run(
                _generate_questions(args.activity_type, args.level, args.topic, args.count, args.offline)
            )
        return asyncio.run(_generate_prompt(args.activity_type, args.level, args.topic, args.offline))
    except ConfigurationError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 2
    except UpstreamAIError as e:
        print(f"Model unavailable: {e.message}", file=sys.stderr)
        return 1
    except EvaluationException as e:
        print(f"Evaluation failed: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
