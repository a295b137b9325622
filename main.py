import sys
from config import settings
from ui.app import create_app

def main():
    """
    SignalBoard Entry Point.
    Serves the dashboard API over the configured data folder.
    """
    print("📈 SignalBoard - Stock Signal Dashboard Initializing...")
    print(f"📂 Data Directory: {settings.DATA_DIR}")

    app = create_app()
    print(f"🌐 Listening on http://{settings.HOST}:{settings.PORT}")
    app.run(host=settings.HOST, port=settings.PORT, debug=False)

if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n🛑 Execution interrupted by user.")
        sys.exit(0)
    except Exception as e:
        print(f"\n🔥 Fatal System Error: {e}")
        sys.exit(1)
