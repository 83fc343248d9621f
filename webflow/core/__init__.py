"""Data model, errors, options and persistence shared by recording and replay."""
