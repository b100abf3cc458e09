"""apklaunch: deploy and launch an APK on an Android device or emulator."""

__version__ = "0.1.0"
