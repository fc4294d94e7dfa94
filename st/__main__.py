import sys
from st.common.logger import log

# Entry point for `python -m st`
def run() -> None:
    log.info("=== INITIALIZED NEW SESSION ===")
    try:
        from st.ui.app import main
        main()
    except SystemExit:
        raise
    except Exception:
        # Full stack trace, always
        log.exception("Uncaught exception in entrypoint, exiting")
        sys.exit(1)

if __name__ == "__main__":
    run()
