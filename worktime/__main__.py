from worktime import create_app


def main() -> None:
    application = create_app()
    application.run(host="0.0.0.0", port=5001)


if __name__ == "__main__":
    main()
