from storesync.adk_runtime import AdkAgent, AdkStep


def test_runner_stops_at_terminal_context_but_keeps_always_run_steps():
    context = {"seen": [], "done": False}

    def record(name, finish=False):
        def step(ctx):
            ctx["seen"].append(name)
            if finish:
                ctx["done"] = True

        return step

    agent = AdkAgent(
        [
            AdkStep("first", record("first")),
            AdkStep("skipped", record("skipped"), skip_if=lambda ctx: True),
            AdkStep("finish", record("finish", finish=True)),
            AdkStep("after", record("after")),
            AdkStep("audit", record("audit"), always_run=True),
        ],
        stop_when=lambda ctx: ctx["done"],
    )

    assert agent.run(context) == ["first", "finish", "audit"]
    assert context["seen"] == ["first", "finish", "audit"]
