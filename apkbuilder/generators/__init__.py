"""Android project file generators: manifest, gradle descriptors, icons, signing."""
