from language_tutor.console import main

main()
