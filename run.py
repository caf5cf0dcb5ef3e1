from m3u8_extractor.main import app, run  # noqa: F401 - serverless hosts import `app` from here

# Run the app
if __name__ == "__main__":
    run()
