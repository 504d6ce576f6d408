from .main import engine_main

engine_main()
