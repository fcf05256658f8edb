"""python -m email_assistant <command>"""

from email_assistant.cli import main

if __name__ == "__main__":
    main()
