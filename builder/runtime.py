"""
Fixed runtime preamble for assembled preview documents.

Generated code is JSX compiled in the page by Babel standalone against the
React 18 UMD builds. Everything in here is constant text so that assembly is
byte-for-byte deterministic.
"""

TAILWIND_CDN = "https://cdn.tailwindcss.com"
REACT_CDN = "https://unpkg.com/react@18/umd/react.development.js"
REACT_DOM_CDN = "https://unpkg.com/react-dom@18/umd/react-dom.development.js"
BABEL_CDN = "https://unpkg.com/@babel/standalone/babel.min.js"

# Element ids and attributes the sandbox host inspects.
ROOT_ID = "root"
ERROR_PANEL_ID = "error-display"
ERROR_MESSAGE_ID = "error-message"
CRASH_ATTRIBUTE = "data-preview-crash"

THEME_STYLES = """    :root {
      --background: 0 0% 100%;
      --foreground: 222.2 84% 4.9%;
      --card: 0 0% 100%;
      --card-foreground: 222.2 84% 4.9%;
      --primary: 222.2 47.4% 11.2%;
      --primary-foreground: 210 40% 98%;
      --secondary: 210 40% 96.1%;
      --secondary-foreground: 222.2 47.4% 11.2%;
      --muted: 210 40% 96.1%;
      --muted-foreground: 215.4 16.3% 46.9%;
      --accent: 210 40% 96.1%;
      --accent-foreground: 222.2 47.4% 11.2%;
      --destructive: 0 84.2% 60.2%;
      --destructive-foreground: 210 40% 98%;
      --border: 214.3 31.8% 91.4%;
      --input: 214.3 31.8% 91.4%;
      --ring: 222.2 84% 4.9%;
      --radius: 0.5rem;
    }
    * { border-color: hsl(var(--border)); }
    body {
      margin: 0;
      font-family: 'Inter', system-ui, sans-serif;
      background-color: hsl(var(--background));
      color: hsl(var(--foreground));
    }"""

TAILWIND_CONFIG = """    tailwind.config = {
      theme: {
        extend: {
          colors: {
            border: "hsl(var(--border))",
            input: "hsl(var(--input))",
            ring: "hsl(var(--ring))",
            background: "hsl(var(--background))",
            foreground: "hsl(var(--foreground))",
            primary: { DEFAULT: "hsl(var(--primary))", foreground: "hsl(var(--primary-foreground))" },
            secondary: { DEFAULT: "hsl(var(--secondary))", foreground: "hsl(var(--secondary-foreground))" },
            destructive: { DEFAULT: "hsl(var(--destructive))", foreground: "hsl(var(--destructive-foreground))" },
            muted: { DEFAULT: "hsl(var(--muted))", foreground: "hsl(var(--muted-foreground))" },
            accent: { DEFAULT: "hsl(var(--accent))", foreground: "hsl(var(--accent-foreground))" },
            card: { DEFAULT: "hsl(var(--card))", foreground: "hsl(var(--card-foreground))" },
          },
          borderRadius: {
            lg: "var(--radius)",
            md: "calc(var(--radius) - 2px)",
            sm: "calc(var(--radius) - 4px)",
          },
        },
      },
    };"""

# Registered before any generated code runs so compile errors are caught too.
ERROR_LISTENER = """    function __showPreviewError(message) {
      var root = document.getElementById('%(root)s');
      var panel = document.getElementById('%(panel)s');
      if (root) root.style.display = 'none';
      if (panel) panel.style.display = 'block';
      var target = document.getElementById('%(message)s');
      if (target) target.textContent = message;
    }
    window.addEventListener('error', function (e) {
      var err = e.error;
      var message = e.message || (err && err.message) || 'Unknown error';
      if (err && err.stack) message += '\\n\\n' + err.stack;
      __showPreviewError(message);
    });
    window.addEventListener('unhandledrejection', function (e) {
      var reason = e.reason;
      __showPreviewError((reason && reason.message) || String(reason));
    });""" % {"root": ROOT_ID, "panel": ERROR_PANEL_ID, "message": ERROR_MESSAGE_ID}

ERROR_PANEL = """  <div id="%(panel)s" style="display:none;padding:40px;text-align:center;">
    <h2 style="color:#ef4444;margin-bottom:16px;">Preview Error</h2>
    <pre id="%(message)s" style="background:#fee2e2;padding:16px;border-radius:8px;text-align:left;overflow:auto;max-width:600px;margin:0 auto;white-space:pre-wrap;"></pre>
  </div>""" % {"panel": ERROR_PANEL_ID, "message": ERROR_MESSAGE_ID}

# Shared bindings that generated components use without importing them.
HELPERS = """    const { useState, useEffect, useRef, useCallback, useMemo, useContext, useReducer, createContext, Fragment } = React;

    const cn = (...classes) => classes.filter(Boolean).join(' ');

    const createIcon = (pathData, options = {}) => {
      const { viewBox = '0 0 24 24', fill = 'none', strokeWidth = 2 } = options;
      return function IconComponent({ className = '', size = 24, ...props }) {
        return React.createElement('svg', {
          xmlns: 'http://www.w3.org/2000/svg',
          width: size,
          height: size,
          viewBox,
          fill,
          stroke: 'currentColor',
          strokeWidth,
          strokeLinecap: 'round',
          strokeLinejoin: 'round',
          className,
          ...props,
          dangerouslySetInnerHTML: { __html: pathData },
        });
      };
    };"""

# Icons live on window; a component declaring one of these names keeps its own
# (hoisted) definition.
ICONS = {
    "ArrowRight": '<path d="M5 12h14"/><path d="m12 5 7 7-7 7"/>',
    "Check": '<path d="M20 6 9 17l-5-5"/>',
    "ChevronDown": '<path d="m6 9 6 6 6-6"/>',
    "ChevronRight": '<path d="m9 18 6-6-6-6"/>',
    "Mail": '<rect width="20" height="16" x="2" y="4" rx="2"/><path d="m22 7-8.97 5.7a1.94 1.94 0 0 1-2.06 0L2 7"/>',
    "Menu": '<line x1="4" x2="20" y1="12" y2="12"/><line x1="4" x2="20" y1="6" y2="6"/><line x1="4" x2="20" y1="18" y2="18"/>',
    "Phone": '<path d="M22 16.92v3a2 2 0 0 1-2.18 2 19.79 19.79 0 0 1-8.63-3.07 19.5 19.5 0 0 1-6-6 19.79 19.79 0 0 1-3.07-8.67A2 2 0 0 1 4.11 2h3a2 2 0 0 1 2 1.72c.13.96.36 1.9.7 2.81a2 2 0 0 1-.45 2.11L8.09 9.91a16 16 0 0 0 6 6l1.27-1.27a2 2 0 0 1 2.11-.45c.91.34 1.85.57 2.81.7A2 2 0 0 1 22 16.92z"/>',
    "Search": '<circle cx="11" cy="11" r="8"/><path d="m21 21-4.3-4.3"/>',
    "Star": '<polygon points="12 2 15.09 8.26 22 9.27 17 14.14 18.18 21.02 12 17.77 5.82 21.02 7 14.14 2 9.27 8.91 8.26 12 2"/>',
    "User": '<path d="M19 21v-2a4 4 0 0 0-4-4H9a4 4 0 0 0-4 4v2"/><circle cx="12" cy="7" r="4"/>',
    "X": '<path d="M18 6 6 18"/><path d="m6 6 12 12"/>',
    "Zap": '<polygon points="13 2 3 14 12 14 11 22 21 10 12 10 13 2"/>',
}

ERROR_BOUNDARY = """    class PreviewErrorBoundary extends React.Component {
      constructor(props) {
        super(props);
        this.state = { hasError: false, error: null };
      }
      static getDerivedStateFromError(error) {
        return { hasError: true, error };
      }
      componentDidCatch(error, errorInfo) {
        console.error('Component error:', error, errorInfo);
      }
      render() {
        if (this.state.hasError) {
          return React.createElement('div', { '%(attr)s': 'true', style: { padding: '40px', textAlign: 'center' } },
            React.createElement('h2', { style: { color: '#ef4444', marginBottom: '16px' } }, 'Component Error'),
            React.createElement('pre', { style: { background: '#fee2e2', padding: '16px', borderRadius: '8px', textAlign: 'left', whiteSpace: 'pre-wrap' } },
              (this.state.error && this.state.error.message) || 'Unknown error'));
        }
        return this.props.children;
      }
    }""" % {"attr": CRASH_ATTRIBUTE}

ROOT_RENDER = """    try {
      const root = ReactDOM.createRoot(document.getElementById('%(root)s'));
      root.render(React.createElement(PreviewErrorBoundary, null, React.createElement(App)));
    } catch (err) {
      console.error('Render error:', err);
      __showPreviewError(err.message + '\\n\\n' + (err.stack || ''));
    }""" % {"root": ROOT_ID}


def icon_bindings() -> str:
    return "\n".join(
        "    if (typeof window.%s === 'undefined') window.%s = createIcon('%s');" % (name, name, ICONS[name]) for name in sorted(ICONS)
    )


def document_head(stylesheet: str) -> str:
    return "\n".join([
        "<!DOCTYPE html>",
        '<html lang="en">',
        "<head>",
        '  <meta charset="UTF-8"/>',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0"/>',
        "  <script>",
        ERROR_LISTENER,
        "  </script>",
        '  <script src="%s"></script>' % TAILWIND_CDN,
        "  <script>",
        TAILWIND_CONFIG,
        "  </script>",
        '  <script src="%s"></script>' % REACT_CDN,
        '  <script src="%s"></script>' % REACT_DOM_CDN,
        '  <script src="%s"></script>' % BABEL_CDN,
        "  <style>",
        THEME_STYLES,
        stylesheet,
        "  </style>",
        "</head>",
    ])


def document_body(components: str, entry: str) -> str:
    return "\n".join([
        "<body>",
        '  <div id="%s"></div>' % ROOT_ID,
        ERROR_PANEL,
        '  <script type="text/babel" data-presets="react">',
        HELPERS,
        icon_bindings(),
        ERROR_BOUNDARY,
        "",
        "    // Components",
        components,
        "",
        "    // App",
        entry,
        "",
        ROOT_RENDER,
        "  </script>",
        "</body>",
        "</html>",
        "",
    ])
