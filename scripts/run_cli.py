"""
scripts/run_cli.py
Talk to the asthma consultation bot in a terminal.

Usage:
    python scripts/run_cli.py

Deferred analysis runs inline and its callback is printed right after the
wait message.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from asthma_bot import config
from asthma_bot.archive import JsonlArchive
from asthma_bot.dialogue import DialogueEngine
from asthma_bot.responses import text_of
from asthma_bot.services import GroqQuestionService, GroqWaitMessageService
from asthma_bot.store import InMemorySessionStore
from asthma_bot.tasks import LocalTaskQueue, run_analysis_task

CLI_USER     = "cli-user"
CLI_CALLBACK = "cli://callback"


def _print_envelope(envelope):
    print(f"\n챗봇: {text_of(envelope)}")
    replies = envelope.get("template", {}).get("quickReplies", [])
    buttons = [
        b for o in envelope.get("template", {}).get("outputs", [])
        for b in o.get("basicCard", {}).get("buttons", [])
    ]
    labels = [r["label"] for r in replies + buttons]
    if labels:
        print("  [" + "] [".join(labels) + "]")
    print()


def main():
    print("\n" + "=" * 60)
    print("  소아 천식 상담 챗봇")
    print("  ⚠️  의학적 진단을 대신할 수 없습니다.")
    print("=" * 60 + "\n")

    if not config.GROQ_API_KEY:
        print("❌ GROQ_API_KEY not set.")
        print("   Add it to your environment or .env file.")
        sys.exit(1)

    store = InMemorySessionStore()
    pending = []

    def deliver(url, payload):
        pending.append(payload)
        return True

    queue = LocalTaskQueue(
        lambda consumer, task: consumer(task),
        lambda task: run_analysis_task(task, store, deliver=deliver),
    )
    engine = DialogueEngine(
        store=store,
        question_service=GroqQuestionService(),
        wait_service=GroqWaitMessageService(),
        task_queue=queue,
        archive=JsonlArchive(config.ARCHIVE_PATH),
    )

    print("챗봇: 안녕하세요! 아이의 증상을 편하게 말씀해 주세요. (종료: '상담 종료')\n")

    while True:
        try:
            user_input = input("사용자: ").strip()
            if not user_input:
                continue

            envelope = engine.handle(CLI_USER, user_input, callback_url=CLI_CALLBACK)
            _print_envelope(envelope)
            while pending:
                _print_envelope(pending.pop(0))

            if store.get(CLI_USER) is None:
                break

        except KeyboardInterrupt:
            print("\n\n상담을 마칩니다.")
            break


if __name__ == "__main__":
    main()
