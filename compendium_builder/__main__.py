"""Package entry point for ``python -m compendium_builder``.

RULES:
- This file must exist for ``python -m compendium_builder`` to work
- Delegates to the CLI's main() function
"""

if __name__ == "__main__":
    from compendium_builder.cli import main
    main()
