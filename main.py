from marketing_offer.pipeline import PipelineRunner


def main() -> None:
    """Run the full marketing offer acceptance pipeline."""
    runner = PipelineRunner("config/default.yaml")
    runner.run()


if __name__ == "__main__":
    main()
