from remoting.types.conversion import ConversionResult, TypeConverter, TypeRegistry, default_type_registry

__all__ = ["ConversionResult", "TypeConverter", "TypeRegistry", "default_type_registry"]
